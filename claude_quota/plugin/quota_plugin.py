"""
Host plugin for quota tracking.

Wires the usage accumulator and the quota fetcher into the event hooks and
tools a host application invokes.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol

from ..config.loader import DEFAULT_CONFIG, PluginConfig, config_from_mapping
from ..core.accumulator import UsageAccumulator
from ..core.token_counter import TokenUsage
from ..sdk.usage_client import QuotaFetcher
from .report import render_quota_report, render_reset_summary, render_toast_message

logger = logging.getLogger(__name__)

SERVICE_NAME = "claude-quota"
TOAST_TITLE = "Claude Quota"


class PluginHost(Protocol):
    """Operations the host application exposes to the plugin."""

    async def log(self, level: str, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        ...

    async def show_toast(self, title: str, message: str, duration_ms: int) -> None:
        ...


@dataclass(frozen=True)
class ToolSpec:
    """A callable tool registered with the host."""
    description: str
    execute: Callable[[], Awaitable[str]]


class QuotaPlugin:
    """Tracks assistant token usage and reports it next to the remote quota.

    The accumulator is owned by the plugin instance; the host creates one
    plugin per process and routes its events here.
    """

    def __init__(
        self,
        host: PluginHost,
        config: PluginConfig = DEFAULT_CONFIG,
        accumulator: Optional[UsageAccumulator] = None,
        fetcher: Optional[QuotaFetcher] = None,
    ):
        self.host = host
        self.config = config
        self.accumulator = accumulator or UsageAccumulator()
        self.fetcher = fetcher or QuotaFetcher()

    async def setup(self) -> None:
        await self.host.log(
            "info",
            "Claude Quota Plugin initialized",
            {"service": SERVICE_NAME, "dailyLimit": self.config.daily_token_limit},
        )

    # Event hooks. These must never raise into the host.

    async def on_response_updated(self, message: Any) -> None:
        """Record token usage from an assistant message."""
        try:
            if not isinstance(message, Mapping) or message.get("role") != "assistant":
                return
            tokens = message.get("tokens")
            if not isinstance(tokens, Mapping):
                return
            self.accumulator.record_response(
                TokenUsage.from_payload(tokens),
                message.get("cost") or 0.0,
            )
        except Exception:
            logger.exception("Failed to record response usage")

    async def on_session_idle(self) -> None:
        """Show a usage toast once the session goes idle."""
        try:
            if not self.config.show_toast_on_idle:
                return
            usage = self.accumulator.snapshot()
            if usage.state.request_count == 0:
                return
            await self.host.show_toast(
                TOAST_TITLE,
                render_toast_message(usage, self.config),
                self.config.toast_duration,
            )
        except Exception:
            logger.exception("Failed to show idle toast")

    async def on_session_created(self) -> None:
        """Start fresh counters for a new session."""
        try:
            self.accumulator.reset()
            await self.host.log(
                "debug", "Quota state reset for new session", {"service": SERVICE_NAME}
            )
        except Exception:
            logger.exception("Failed to reset usage for new session")

    # Tools

    async def quota(self, timeout: Optional[float] = None) -> str:
        """Combined report of the remote quota and local session usage.

        Args:
            timeout: Seconds allowed for each remote call; the fetcher's
                own timeout applies when omitted
        """
        result = await self.fetcher.fetch_quota(timeout=timeout)
        return render_quota_report(result, self.accumulator.snapshot(), self.config)

    async def quota_reset(self) -> str:
        previous = self.accumulator.reset()
        return render_reset_summary(previous)

    def hooks(self) -> Dict[str, Callable[..., Awaitable[None]]]:
        """Event hooks keyed by the host's event names."""
        return {
            "message.updated": self.on_response_updated,
            "session.idle": self.on_session_idle,
            "session.created": self.on_session_created,
        }

    def tools(self) -> Dict[str, ToolSpec]:
        """Tools keyed by the names the host exposes to the assistant."""
        return {
            "quota": ToolSpec(
                description=(
                    "Check Claude subscription quota and current session usage. "
                    "Shows 5-hour and weekly utilization, token breakdown, cost "
                    "and a progress bar."
                ),
                execute=self.quota,
            ),
            "quotaReset": ToolSpec(
                description="Reset the quota tracking counters to zero",
                execute=self.quota_reset,
            ),
        }


async def create_plugin(
    host: PluginHost,
    settings: Optional[Mapping[str, Any]] = None,
) -> QuotaPlugin:
    """Entry point for hosts: build, initialize and return the plugin.

    Args:
        host: Host application handle
        settings: Host-supplied settings (camelCase or snake_case keys)

    Raises:
        ValueError: If settings are invalid
    """
    plugin = QuotaPlugin(host, config_from_mapping(settings))
    await plugin.setup()
    return plugin
