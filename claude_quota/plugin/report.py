"""
Markdown report rendering for the plugin tools.

Turns a quota fetch result and a local usage snapshot into the text
returned by the quota tools and shown in the idle toast.
"""

from datetime import datetime
from typing import List, Optional

from ..config.loader import PluginConfig
from ..core.accumulator import UsageSnapshot
from ..core.formatters import (
    calculate_usage_percent,
    format_cost,
    format_duration,
    format_number,
    format_time_remaining,
    format_token_count,
    progress_bar,
)
from ..core.quota import QuotaResult, QuotaSnapshot, QuotaWindow, Unavailable

REMOTE_BAR_WIDTH = 20
LOCAL_BAR_WIDTH = 30
MODEL_BAR_WIDTH = 15

POSSIBLE_CAUSES = (
    "Not logged in with Claude OAuth (Pro/Max subscription)",
    "Access token expired and could not be refreshed",
    "Network error or usage API unavailable",
)


def _window_lines(window: QuotaWindow, now: Optional[datetime]) -> List[str]:
    return [
        "```",
        f"{progress_bar(window.used_percent, REMOTE_BAR_WIDTH)} "
        f"{window.used_percent}% used | {window.remaining_percent}% remaining",
        "```",
        f"Resets in: {format_time_remaining(window.resets_at, now)}",
    ]


def render_remote_section(snapshot: QuotaSnapshot, now: Optional[datetime] = None) -> str:
    """Render the subscription quota windows as Markdown."""
    lines = ["## Claude Subscription Quota", "", "### Session (5-hour window)"]
    lines += _window_lines(snapshot.session_window, now)
    lines += ["", "### Weekly (7-day rolling)"]
    lines += _window_lines(snapshot.weekly_window, now)

    if snapshot.per_model_weekly:
        lines += ["", "### Per-Model Weekly", "| Model | Usage |", "|-------|-------|"]
        for model, window in sorted(snapshot.per_model_weekly.items()):
            bar = progress_bar(window.used_percent, MODEL_BAR_WIDTH)
            lines.append(f"| {model.capitalize()} | `{bar}` {window.used_percent}% |")

    extra = snapshot.extra_usage
    if extra is not None and extra.is_enabled:
        monthly_limit = "N/A" if extra.monthly_limit is None else f"{extra.monthly_limit:g}"
        used = 0 if extra.used_credits is None else extra.used_credits
        lines += [
            "",
            "### Extra Usage",
            f"- **Monthly limit**: ${monthly_limit}",
            f"- **Used credits**: ${used:g}",
        ]
    return "\n".join(lines)


def render_fallback_block(unavailable: Unavailable) -> str:
    """Render the block shown when the remote quota could not be fetched."""
    lines = [
        "## Claude Subscription Quota",
        "",
        "**Could not fetch remote quota.**",
        "",
        "Possible causes:",
    ]
    lines += [f"- {cause}" for cause in POSSIBLE_CAUSES]
    if unavailable.detail:
        lines += ["", f"_Details: {unavailable.detail}_"]
    return "\n".join(lines)


def render_local_section(snapshot: UsageSnapshot, config: PluginConfig) -> str:
    """Render the locally tracked session usage as Markdown."""
    state = snapshot.state
    total = snapshot.total_tokens
    limit = config.daily_token_limit
    percentage = calculate_usage_percent(total, limit)
    remaining = max(0, limit - total)
    remaining_percent = max(0.0, 100 - percentage)

    return "\n".join([
        "## Local Session Usage",
        "",
        "### Session Stats",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Duration | {format_duration(snapshot.session_duration_ms)} |",
        f"| Requests | {state.request_count} |",
        f"| Total Cost | {format_cost(state.cost)} |",
        "",
        "### Token Breakdown",
        "| Type | Count |",
        "|------|-------|",
        f"| Input Tokens | {format_number(state.input_tokens)} |",
        f"| Output Tokens | {format_number(state.output_tokens)} |",
        f"| Reasoning Tokens | {format_number(state.reasoning_tokens)} |",
        f"| Cache Read | {format_number(state.cache_read_tokens)} |",
        f"| Cache Write | {format_number(state.cache_write_tokens)} |",
        f"| **Total** | **{format_number(total)}** |",
        "",
        "### Usage Progress",
        "```",
        f"{progress_bar(percentage, LOCAL_BAR_WIDTH)} {percentage:.1f}% used",
        "```",
        "",
        f"- **Used**: {format_token_count(total)} tokens",
        f"- **Limit**: {format_token_count(limit)} tokens",
        f"- **Remaining**: ~{format_token_count(remaining)} tokens ({remaining_percent:.0f}%)",
        "",
        "---",
        "*Local tracking covers this session only. The subscription quota above is authoritative.*",
    ])


def render_quota_report(
    result: QuotaResult,
    usage: UsageSnapshot,
    config: PluginConfig,
    now: Optional[datetime] = None,
) -> str:
    """Combine the remote quota (or fallback) with the local usage section."""
    if isinstance(result, QuotaSnapshot):
        remote = render_remote_section(result, now)
    else:
        remote = render_fallback_block(result)
    return f"{remote}\n\n{render_local_section(usage, config)}"


def render_toast_message(usage: UsageSnapshot, config: PluginConfig) -> str:
    """One-line summary of local usage against the daily token limit."""
    total = usage.total_tokens
    percentage = calculate_usage_percent(total, config.daily_token_limit)
    remaining = max(0.0, 100 - percentage)
    bar = progress_bar(percentage, config.progress_bar_width)
    return (
        f"{bar} {remaining:.0f}% remaining | "
        f"{format_token_count(total)} used | {format_cost(usage.state.cost)}"
    )


def render_reset_summary(previous: UsageSnapshot) -> str:
    return (
        f"Quota counters reset. Previous usage: "
        f"{format_token_count(previous.total_tokens)} tokens, {format_cost(previous.state.cost)}"
    )
