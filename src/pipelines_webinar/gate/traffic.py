"""Traffic-shifting policies for moving an alias to a new version."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ShiftType(Enum):
    """How traffic moves from the old version to the new one."""

    CANARY = "canary"
    LINEAR = "linear"
    ALL_AT_ONCE = "all_at_once"


@dataclass(frozen=True)
class TrafficShiftPolicy:
    """Shifting schedule, e.g. canary 99% then the rest after 5 minutes.

    Attributes:
        shift_type: Canary (two steps), linear (equal steps) or all at once.
        percentage: Share moved on the first step (canary) or on each step
            (linear). Ignored for all_at_once.
        interval_minutes: Bake time after each step before the next one.
    """

    shift_type: ShiftType = ShiftType.CANARY
    percentage: int = 99
    interval_minutes: int = 5

    def __post_init__(self) -> None:
        if self.shift_type != ShiftType.ALL_AT_ONCE:
            if not 1 <= self.percentage <= 100:
                raise ValueError(f"percentage must be between 1 and 100, got {self.percentage}")
            if self.interval_minutes <= 0:
                raise ValueError(f"interval_minutes must be positive, got {self.interval_minutes}")

    def steps(self) -> list[int]:
        """Cumulative percentage of traffic on the new version after each step."""
        if self.shift_type == ShiftType.ALL_AT_ONCE or self.percentage >= 100:
            return [100]
        if self.shift_type == ShiftType.CANARY:
            return [self.percentage, 100]
        steps = list(range(self.percentage, 100, self.percentage))
        return steps + [100]

    @property
    def total_minutes(self) -> int:
        """Bake time spent before the final step."""
        if self.shift_type == ShiftType.ALL_AT_ONCE:
            return 0
        return self.interval_minutes * (len(self.steps()) - 1)

    @classmethod
    def from_settings(cls, shift_type: str, percentage: int, interval_minutes: int) -> TrafficShiftPolicy:
        return cls(
            shift_type=ShiftType(shift_type),
            percentage=percentage,
            interval_minutes=interval_minutes,
        )

    def to_dict(self) -> dict[str, str | int | list[int]]:
        """Convert to dictionary for serialization."""
        return {
            "shift_type": self.shift_type.value,
            "percentage": self.percentage,
            "interval_minutes": self.interval_minutes,
            "steps": self.steps(),
        }
