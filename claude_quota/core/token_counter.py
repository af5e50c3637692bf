"""
Token counting for assistant responses.

Defines the token usage schema accepted from host events and the coercion
applied to loosely typed payloads.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional


def coerce_count(value: Any) -> int:
    """Coerce a payload value to a non-negative int, treating junk as 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if value != value or value <= 0:  # NaN or non-positive
        return 0
    return int(value)


def coerce_cost(value: Any) -> float:
    """Coerce a payload value to a non-negative float, treating junk as 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if value != value or value <= 0:
        return 0.0
    return float(value)


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported for a single assistant response.

    Every field defaults to zero so partial payloads are accepted as-is.
    """
    input: int = 0
    output: int = 0
    reasoning: int = 0
    cache_read: int = 0
    cache_write: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens across all categories."""
        return self.input + self.output + self.reasoning + self.cache_read + self.cache_write

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "TokenUsage":
        """Build usage from a host message's ``tokens`` mapping.

        Expected shape is ``{input, output, reasoning, cache: {read, write}}``
        with every key optional. Missing, non-numeric and negative values
        become 0; this never raises.

        Args:
            payload: Raw token mapping from the host, or None

        Returns:
            Normalized TokenUsage
        """
        if not isinstance(payload, Mapping):
            return cls()

        cache = payload.get("cache")
        if not isinstance(cache, Mapping):
            cache = {}

        return cls(
            input=coerce_count(payload.get("input")),
            output=coerce_count(payload.get("output")),
            reasoning=coerce_count(payload.get("reasoning")),
            cache_read=coerce_count(cache.get("read")),
            cache_write=coerce_count(cache.get("write")),
        )
