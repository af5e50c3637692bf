"""
Unit tests for the host plugin.

Tests event hooks, tools and the rendered Markdown report.
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from claude_quota.config.loader import PluginConfig
from claude_quota.core.accumulator import UsageAccumulator
from claude_quota.core.quota import Unavailable, UnavailableReason, parse_usage_response
from claude_quota.plugin import QuotaPlugin, create_plugin
from claude_quota.sdk.usage_client import QuotaFetcher


class FakeHost:
    """Host double that records log calls and toasts."""

    def __init__(self, fail_toasts: bool = False):
        self.logs = []
        self.toasts = []
        self.fail_toasts = fail_toasts

    async def log(self, level, message, extra=None):
        self.logs.append((level, message, extra))

    async def show_toast(self, title, message, duration_ms):
        if self.fail_toasts:
            raise RuntimeError("toast service down")
        self.toasts.append((title, message, duration_ms))


class StubFetcher:
    """Fetcher double returning a fixed result."""

    def __init__(self, result):
        self.result = result
        self.calls = 0
        self.timeouts = []

    async def fetch_quota(self, credential_path=None, timeout=None):
        self.calls += 1
        self.timeouts.append(timeout)
        return self.result


def _assistant_message(**tokens):
    return {"role": "assistant", "tokens": tokens, "cost": 0.05}


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def unavailable_plugin(host):
    fetcher = StubFetcher(Unavailable(UnavailableReason.CREDENTIALS_MISSING, "Auth file not found"))
    return QuotaPlugin(host, PluginConfig(daily_token_limit=10_000), fetcher=fetcher)


class TestEventHooks:
    """Test hook handling of host events."""

    @pytest.mark.asyncio
    async def test_assistant_message_is_recorded(self, unavailable_plugin):
        await unavailable_plugin.on_response_updated({
            "role": "assistant",
            "tokens": {"input": 100, "output": 40, "reasoning": 10, "cache": {"read": 500, "write": 50}},
            "cost": 0.02,
        })
        state = unavailable_plugin.accumulator.state
        assert state.total_tokens == 700
        assert state.request_count == 1
        assert state.cost == pytest.approx(0.02)

    @pytest.mark.asyncio
    async def test_user_message_is_ignored(self, unavailable_plugin):
        await unavailable_plugin.on_response_updated({"role": "user", "tokens": {"input": 100}})
        assert unavailable_plugin.accumulator.state.request_count == 0

    @pytest.mark.asyncio
    async def test_message_without_tokens_is_ignored(self, unavailable_plugin):
        await unavailable_plugin.on_response_updated({"role": "assistant"})
        await unavailable_plugin.on_response_updated(None)
        assert unavailable_plugin.accumulator.state.request_count == 0

    @pytest.mark.asyncio
    async def test_missing_cost_defaults_to_zero(self, unavailable_plugin):
        await unavailable_plugin.on_response_updated({"role": "assistant", "tokens": {"output": 3}})
        assert unavailable_plugin.accumulator.state.cost == 0.0

    @pytest.mark.asyncio
    async def test_session_created_resets(self, unavailable_plugin, host):
        await unavailable_plugin.on_response_updated(_assistant_message(input=10))
        await unavailable_plugin.on_session_created()

        assert unavailable_plugin.accumulator.state.request_count == 0
        assert host.logs[-1][:2] == ("debug", "Quota state reset for new session")

    @pytest.mark.asyncio
    async def test_idle_toast(self, unavailable_plugin, host):
        await unavailable_plugin.on_response_updated(_assistant_message(input=2_500))
        await unavailable_plugin.on_session_idle()

        title, message, duration = host.toasts[0]
        assert title == "Claude Quota"
        assert duration == 5000
        assert message == "[█████░░░░░░░░░░░░░░░] 75% remaining | 3K used | $0.050"

    @pytest.mark.asyncio
    async def test_idle_toast_suppressed_without_requests(self, unavailable_plugin, host):
        await unavailable_plugin.on_session_idle()
        assert host.toasts == []

    @pytest.mark.asyncio
    async def test_idle_toast_disabled(self, host):
        plugin = QuotaPlugin(host, PluginConfig(show_toast_on_idle=False), fetcher=StubFetcher(None))
        await plugin.on_response_updated(_assistant_message(input=1))
        await plugin.on_session_idle()
        assert host.toasts == []

    @pytest.mark.asyncio
    async def test_hooks_never_raise(self):
        host = FakeHost(fail_toasts=True)
        plugin = QuotaPlugin(host, fetcher=StubFetcher(None))
        await plugin.on_response_updated(_assistant_message(input=1))
        await plugin.on_session_idle()


class TestTools:
    """Test the quota and quotaReset tools."""

    @pytest.mark.asyncio
    async def test_quota_report_with_snapshot(self, host):
        snapshot = parse_usage_response({
            "five_hour": {"utilization": 8},
            "seven_day": {"utilization": 28},
        })
        plugin = QuotaPlugin(host, fetcher=StubFetcher(snapshot))

        report = await plugin.quota()

        assert "8% used | 92% remaining" in report
        assert "28% used | 72% remaining" in report
        assert "Resets in: unknown" in report
        assert "## Local Session Usage" in report

    @pytest.mark.asyncio
    async def test_quota_report_shows_models_and_extra_usage(self, host):
        resets_at = (datetime.now(timezone.utc) + timedelta(hours=3, minutes=30, seconds=30)).isoformat()
        snapshot = parse_usage_response({
            "five_hour": {"utilization": 50, "resets_at": resets_at},
            "seven_day": {"utilization": 10},
            "seven_day_opus": {"utilization": 12},
            "extra_usage": {"is_enabled": True, "monthly_limit": 50, "used_credits": 7.5},
        })
        plugin = QuotaPlugin(host, fetcher=StubFetcher(snapshot))

        report = await plugin.quota()

        assert "Resets in: 3h 30m" in report
        assert "| Opus |" in report
        assert "- **Monthly limit**: $50" in report
        assert "- **Used credits**: $7.5" in report

    @pytest.mark.asyncio
    async def test_quota_fallback_keeps_local_section(self, unavailable_plugin):
        await unavailable_plugin.on_response_updated(_assistant_message(input=1_200, output=300))

        report = await unavailable_plugin.quota()

        assert "Could not fetch remote quota" in report
        assert "Possible causes:" in report
        assert "| Requests | 1 |" in report
        assert "| Input Tokens | 1,200 |" in report
        assert "| **Total** | **1,500** |" in report
        assert "15.0% used" in report

    @pytest.mark.asyncio
    async def test_quota_without_credential_file(self, host, tmp_path):
        """A real fetcher with no auth file on any candidate path falls back."""
        fetcher = QuotaFetcher(candidates=[tmp_path / "a.json", tmp_path / "b.json"])
        plugin = QuotaPlugin(host, fetcher=fetcher)
        await plugin.on_response_updated(_assistant_message(input=42))

        report = await plugin.quota()

        assert "Could not fetch remote quota" in report
        assert "| Input Tokens | 42 |" in report

    @pytest.mark.asyncio
    async def test_quota_forwards_timeout(self, host):
        fetcher = StubFetcher(parse_usage_response({}))
        plugin = QuotaPlugin(host, fetcher=fetcher)

        await plugin.quota(timeout=2.5)
        await plugin.quota()

        assert fetcher.timeouts == [2.5, None]

    @pytest.mark.asyncio
    async def test_quota_with_non_finite_utilization(self, host, tmp_path):
        """NaN and Infinity in the usage body render as zero usage."""
        def handler(request):
            return httpx.Response(
                200,
                content=b'{"five_hour": {"utilization": NaN}, "seven_day": {"utilization": Infinity}}',
                headers={"content-type": "application/json"},
            )

        auth_path = tmp_path / "auth.json"
        auth_path.write_text(json.dumps({
            "anthropic": {"type": "oauth", "refresh": "r", "access": "a", "expires": 1},
        }))
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        fetcher = QuotaFetcher(candidates=[auth_path], client=client, now_ms=lambda: 0)
        plugin = QuotaPlugin(host, fetcher=fetcher)

        report = await plugin.quota()
        await client.aclose()

        assert report.count("0% used | 100% remaining") == 2

    @pytest.mark.asyncio
    async def test_quota_reset_summarizes_previous_usage(self, unavailable_plugin):
        await unavailable_plugin.on_response_updated(_assistant_message(input=1_000, output=500))

        summary = await unavailable_plugin.quota_reset()

        assert summary == "Quota counters reset. Previous usage: 2K tokens, $0.050"
        assert unavailable_plugin.accumulator.state.total_tokens == 0

    def test_registration_tables(self, unavailable_plugin):
        assert set(unavailable_plugin.hooks()) == {"message.updated", "session.idle", "session.created"}
        tools = unavailable_plugin.tools()
        assert set(tools) == {"quota", "quotaReset"}
        assert tools["quotaReset"].execute == unavailable_plugin.quota_reset


class TestCreatePlugin:
    """Test the host entry point."""

    @pytest.mark.asyncio
    async def test_logs_initialization(self, host):
        plugin = await create_plugin(host, {"dailyTokenLimit": 250_000})

        assert plugin.config.daily_token_limit == 250_000
        level, message, extra = host.logs[0]
        assert level == "info"
        assert message == "Claude Quota Plugin initialized"
        assert extra["dailyLimit"] == 250_000

    @pytest.mark.asyncio
    async def test_invalid_settings_raise(self, host):
        with pytest.raises(ValueError):
            await create_plugin(host, {"dailyTokenLimit": 0})

    def test_shared_accumulator(self, host):
        accumulator = UsageAccumulator()
        plugin = QuotaPlugin(host, accumulator=accumulator, fetcher=StubFetcher(None))
        assert plugin.accumulator is accumulator
