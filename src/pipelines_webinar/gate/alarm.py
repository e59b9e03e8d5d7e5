"""Threshold alarm over a trailing window of metric datapoints.

Mirrors the evaluation CloudWatch performs for a static-threshold alarm:
the newest `evaluation_periods` datapoints are compared with the threshold
and missing periods are filled according to the missing-data policy.
"""

from __future__ import annotations

import logging
import operator
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class AlarmState(Enum):
    """Two-state condition plus the CloudWatch 'not enough data' state."""

    OK = "OK"
    ALARM = "ALARM"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class ComparisonOperator(Enum):
    """Comparison applied as `datapoint <op> threshold`."""

    LESS_THAN = "LessThanThreshold"
    LESS_THAN_OR_EQUAL = "LessThanOrEqualToThreshold"
    GREATER_THAN = "GreaterThanThreshold"
    GREATER_THAN_OR_EQUAL = "GreaterThanOrEqualToThreshold"


_OPERATORS = {
    ComparisonOperator.LESS_THAN: operator.lt,
    ComparisonOperator.LESS_THAN_OR_EQUAL: operator.le,
    ComparisonOperator.GREATER_THAN: operator.gt,
    ComparisonOperator.GREATER_THAN_OR_EQUAL: operator.ge,
}


class MissingDataPolicy(Enum):
    """CloudWatch TreatMissingData values."""

    BREACHING = "breaching"
    NOT_BREACHING = "notBreaching"
    IGNORE = "ignore"
    MISSING = "missing"


@dataclass
class AlarmEvaluation:
    """Outcome of one alarm evaluation.

    Attributes:
        alarm_name: Name of the evaluated alarm.
        state: Resulting alarm state.
        datapoints: The trailing window that was evaluated (None = missing).
        breaching: Number of datapoints (real or filled) that breached.
    """

    alarm_name: str
    state: AlarmState
    datapoints: list[float | None]
    breaching: int

    @property
    def is_alarm(self) -> bool:
        return self.state == AlarmState.ALARM

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for serialization."""
        return {
            "alarm_name": self.alarm_name,
            "state": self.state.value,
            "datapoints": self.datapoints,
            "breaching": self.breaching,
        }


class ThresholdAlarm:
    """Static threshold alarm, e.g. canary SuccessPercent < 90 for 1 period."""

    def __init__(
        self,
        name: str,
        threshold: float = 90,
        comparison: ComparisonOperator = ComparisonOperator.LESS_THAN,
        evaluation_periods: int = 1,
        datapoints_to_alarm: int | None = None,
        missing_data: MissingDataPolicy = MissingDataPolicy.NOT_BREACHING,
    ) -> None:
        if evaluation_periods <= 0:
            raise ValueError(f"evaluation_periods must be positive, got {evaluation_periods}")
        datapoints_to_alarm = datapoints_to_alarm or evaluation_periods
        if not 1 <= datapoints_to_alarm <= evaluation_periods:
            raise ValueError(
                f"datapoints_to_alarm must be between 1 and {evaluation_periods}, got {datapoints_to_alarm}"
            )
        self.name = name
        self.threshold = threshold
        self.comparison = comparison
        self.evaluation_periods = evaluation_periods
        self.datapoints_to_alarm = datapoints_to_alarm
        self.missing_data = missing_data
        self.state = AlarmState.INSUFFICIENT_DATA

    def breaches(self, value: float) -> bool:
        return _OPERATORS[self.comparison](value, self.threshold)

    def evaluate(self, datapoints: Sequence[float | None]) -> AlarmEvaluation:
        """Evaluate the newest `evaluation_periods` datapoints.

        Args:
            datapoints: Metric values, oldest first; None marks a period
                without data.

        Returns:
            AlarmEvaluation; the alarm's `state` attribute is updated too.
        """
        window = list(datapoints[-self.evaluation_periods:])
        window = [None] * (self.evaluation_periods - len(window)) + window
        present = [v for v in window if v is not None]
        breaching = sum(1 for v in present if self.breaches(v))
        missing = len(window) - len(present)

        if missing == 0:
            state = AlarmState.ALARM if breaching >= self.datapoints_to_alarm else AlarmState.OK
        elif self.missing_data == MissingDataPolicy.BREACHING:
            breaching += missing
            state = AlarmState.ALARM if breaching >= self.datapoints_to_alarm else AlarmState.OK
        elif self.missing_data == MissingDataPolicy.NOT_BREACHING:
            state = AlarmState.ALARM if breaching >= self.datapoints_to_alarm else AlarmState.OK
        elif self.missing_data == MissingDataPolicy.IGNORE:
            # Keep the previous state unless the real datapoints decide it.
            if breaching >= self.datapoints_to_alarm:
                state = AlarmState.ALARM
            elif present and len(present) - breaching > self.evaluation_periods - self.datapoints_to_alarm:
                state = AlarmState.OK
            else:
                state = self.state
        else:
            if breaching >= self.datapoints_to_alarm:
                state = AlarmState.ALARM
            elif not present:
                state = AlarmState.INSUFFICIENT_DATA
            else:
                state = AlarmState.OK

        if state != self.state:
            logger.info("Alarm %s: %s -> %s (window=%s)", self.name, self.state.value, state.value, window)
        self.state = state
        return AlarmEvaluation(alarm_name=self.name, state=state, datapoints=window, breaching=breaching)
