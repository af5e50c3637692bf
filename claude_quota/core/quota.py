"""
Remote quota snapshot schema.

Normalizes the usage endpoint's JSON body into a small fixed schema and
defines the explicit failure result returned when no snapshot is available.

Utilization values from the endpoint are percentages in the range 0-100,
not fractions. They are taken as-is; a value of 0.5 means half a percent.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from .formatters import round_half_up

SESSION_WINDOW_KEY = "five_hour"
WEEKLY_WINDOW_KEY = "seven_day"
PER_MODEL_PREFIX = "seven_day_"
EXTRA_USAGE_KEY = "extra_usage"


@dataclass(frozen=True)
class QuotaWindow:
    """Utilization of one rate-limit window."""
    utilization: float = 0.0
    resets_at: Optional[str] = None

    @property
    def used_percent(self) -> int:
        """Utilization rounded half-up to a whole percent."""
        return int(round_half_up(self.utilization))

    @property
    def remaining_percent(self) -> int:
        return max(0, 100 - self.used_percent)


@dataclass(frozen=True)
class ExtraUsage:
    """Pay-as-you-go credit usage beyond the subscription quota."""
    is_enabled: bool
    monthly_limit: Optional[float] = None
    used_credits: Optional[float] = None


@dataclass(frozen=True)
class QuotaSnapshot:
    """Authoritative subscription quota fetched from the usage endpoint."""
    session_window: QuotaWindow
    weekly_window: QuotaWindow
    per_model_weekly: Dict[str, QuotaWindow] = field(default_factory=dict)
    extra_usage: Optional[ExtraUsage] = None
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        def window(w: QuotaWindow) -> Dict[str, Any]:
            return {"utilization": w.utilization, "resets_at": w.resets_at}

        data: Dict[str, Any] = {
            "session": window(self.session_window),
            "weekly": window(self.weekly_window),
            "per_model_weekly": {
                model: window(w) for model, w in self.per_model_weekly.items()
            },
            "extra_usage": None,
            "fetched_at": self.fetched_at.isoformat(),
        }
        if self.extra_usage is not None:
            data["extra_usage"] = {
                "is_enabled": self.extra_usage.is_enabled,
                "monthly_limit": self.extra_usage.monthly_limit,
                "used_credits": self.extra_usage.used_credits,
            }
        return data


class UnavailableReason(Enum):
    """Why a quota snapshot could not be produced."""
    CREDENTIALS_MISSING = "credentials_missing"
    CREDENTIALS_INVALID = "credentials_invalid"
    REMOTE_CALL_FAILED = "remote_call_failed"


@dataclass(frozen=True)
class Unavailable:
    """Failure result of a quota fetch.

    Every failure mode (credentials, token refresh, usage call) collapses to
    this value instead of an exception.
    """
    reason: UnavailableReason
    detail: str = ""
    status_code: Optional[int] = None


QuotaResult = Union[QuotaSnapshot, Unavailable]


def _number(value: Any) -> Optional[float]:
    """Finite float from a JSON number; anything else (NaN and Infinity included) is None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _parse_window(raw: Any) -> QuotaWindow:
    if not isinstance(raw, Mapping):
        return QuotaWindow()
    resets_at = raw.get("resets_at")
    return QuotaWindow(
        utilization=_number(raw.get("utilization")) or 0.0,
        resets_at=resets_at if isinstance(resets_at, str) and resets_at else None,
    )


def _parse_extra_usage(raw: Any) -> Optional[ExtraUsage]:
    if not isinstance(raw, Mapping):
        return None
    return ExtraUsage(
        is_enabled=bool(raw.get("is_enabled")),
        monthly_limit=_number(raw.get("monthly_limit")),
        used_credits=_number(raw.get("used_credits")),
    )


def parse_usage_response(body: Mapping[str, Any], fetched_at: Optional[datetime] = None) -> QuotaSnapshot:
    """Normalize a usage endpoint response.

    Args:
        body: Decoded JSON object from the usage endpoint
        fetched_at: Time of the fetch (defaults to now)

    Returns:
        QuotaSnapshot with absent windows reported as 0% used and an
        unknown reset time
    """
    per_model = {}
    for key, value in body.items():
        if key.startswith(PER_MODEL_PREFIX) and isinstance(value, Mapping):
            model = key[len(PER_MODEL_PREFIX):]
            if model:
                per_model[model] = _parse_window(value)

    return QuotaSnapshot(
        session_window=_parse_window(body.get(SESSION_WINDOW_KEY)),
        weekly_window=_parse_window(body.get(WEEKLY_WINDOW_KEY)),
        per_model_weekly=per_model,
        extra_usage=_parse_extra_usage(body.get(EXTRA_USAGE_KEY)),
        fetched_at=fetched_at or datetime.now(timezone.utc),
    )
