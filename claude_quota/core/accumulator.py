"""
Local usage accumulation.

Keeps per-session token and cost counters for the current process. The
state is held as a frozen dataclass and replaced in a single assignment on
every update, so readers never see a partially applied response.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .token_counter import TokenUsage, coerce_cost

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UsageState:
    """Accumulated usage since the last reset."""
    session_started_at: datetime
    last_updated_at: datetime
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    reasoning_tokens: int = 0
    cost: float = 0.0
    request_count: int = 0

    @property
    def total_tokens(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.reasoning_tokens
            + self.cache_read_tokens
            + self.cache_write_tokens
        )


@dataclass(frozen=True)
class UsageSnapshot:
    """Read-only view of a UsageState taken at a point in time."""
    state: UsageState
    taken_at: datetime

    @property
    def total_tokens(self) -> int:
        return self.state.total_tokens

    @property
    def session_duration(self) -> timedelta:
        return self.taken_at - self.state.session_started_at

    @property
    def session_duration_ms(self) -> int:
        return int(self.session_duration.total_seconds() * 1000)


class UsageAccumulator:
    """Process-wide token and cost counters for one assistant session.

    Only the event path calls record_response(); reporting calls snapshot()
    and reset(). None of the methods suspend, so each call is atomic with
    respect to other tasks on the same event loop.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or _utc_now
        self._state = self._initial_state()

    def _initial_state(self) -> UsageState:
        now = self._clock()
        return UsageState(session_started_at=now, last_updated_at=now)

    @property
    def state(self) -> UsageState:
        return self._state

    def record_response(self, tokens: TokenUsage, cost: float = 0.0) -> UsageState:
        """Add one assistant response to the counters.

        Args:
            tokens: Token counts for the response
            cost: Cost of the response in dollars; invalid values count as 0

        Returns:
            The updated state
        """
        current = self._state
        self._state = replace(
            current,
            input_tokens=current.input_tokens + tokens.input,
            output_tokens=current.output_tokens + tokens.output,
            reasoning_tokens=current.reasoning_tokens + tokens.reasoning,
            cache_read_tokens=current.cache_read_tokens + tokens.cache_read,
            cache_write_tokens=current.cache_write_tokens + tokens.cache_write,
            cost=current.cost + coerce_cost(cost),
            request_count=current.request_count + 1,
            last_updated_at=self._clock(),
        )
        return self._state

    def snapshot(self) -> UsageSnapshot:
        return UsageSnapshot(state=self._state, taken_at=self._clock())

    def reset(self) -> UsageSnapshot:
        """Zero all counters and start a new session.

        Returns:
            Snapshot of the totals that were discarded
        """
        previous = self.snapshot()
        self._state = self._initial_state()
        logger.debug(
            "Usage counters reset after %d requests (%d tokens)",
            previous.state.request_count,
            previous.total_tokens,
        )
        return previous
