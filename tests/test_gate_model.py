"""Tests for the alias pointer, alarm evaluation, shift policies and hook executor."""

from __future__ import annotations

import threading
import time

import pytest

from pipelines_webinar.gate import (
    AlarmState,
    ComparisonOperator,
    HookContext,
    HookExecutor,
    HookStatus,
    MissingDataPolicy,
    ShiftType,
    StaleAliasError,
    ThresholdAlarm,
    TrafficShiftPolicy,
    VersionedAlias,
)


def _context(phase: str = "pre") -> HookContext:
    return HookContext(deployment_id="d-1", phase=phase, old_version="1", new_version="2")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# VersionedAlias
# ---------------------------------------------------------------------------


class TestVersionedAlias:
    def test_initial_state(self) -> None:
        alias = VersionedAlias("Current", "1")
        snap = alias.snapshot()
        assert snap.version == "1"
        assert snap.additional_version is None
        assert snap.revision == 0
        assert snap.weight_of("1") == 1.0

    def test_route_splits_traffic(self) -> None:
        alias = VersionedAlias("Current", "1")
        snap = alias.route(0, "1", "2", 99)
        assert snap.version == "1"
        assert snap.additional_version == "2"
        assert snap.weight_of("2") == pytest.approx(0.99)
        assert snap.weight_of("1") == pytest.approx(0.01)
        assert snap.revision == 1

    def test_route_full_traffic_promotes(self) -> None:
        alias = VersionedAlias("Current", "1")
        snap = alias.route(0, "1", "2", 100)
        assert snap.version == "2"
        assert snap.additional_version is None

    def test_stale_revision_rejected(self) -> None:
        alias = VersionedAlias("Current", "1")
        alias.promote(0, "2")
        with pytest.raises(StaleAliasError):
            alias.revert(0, "1")
        assert alias.version == "2"

    def test_revert(self) -> None:
        alias = VersionedAlias("Current", "1")
        alias.route(0, "1", "2", 50)
        snap = alias.revert(1, "1")
        assert snap.version == "1"
        assert snap.weight_of("2") == 0.0

    def test_invalid_weight(self) -> None:
        alias = VersionedAlias("Current", "1")
        with pytest.raises(ValueError):
            alias.compare_and_swap(0, "1", additional_version="2", additional_weight=1.5)

    def test_concurrent_swaps_only_one_wins(self) -> None:
        alias = VersionedAlias("Current", "1")
        winners: list[str] = []
        barrier = threading.Barrier(8)

        def swap(version: str) -> None:
            barrier.wait()
            try:
                alias.compare_and_swap(0, version)
                winners.append(version)
            except StaleAliasError:
                pass

        threads = [threading.Thread(target=swap, args=(str(v),)) for v in range(2, 10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(winners) == 1
        assert alias.version == winners[0]
        assert alias.revision == 1


# ---------------------------------------------------------------------------
# ThresholdAlarm
# ---------------------------------------------------------------------------


class TestThresholdAlarm:
    def test_below_threshold_alarms(self) -> None:
        alarm = ThresholdAlarm("CanaryAlarm", threshold=90)
        assert alarm.evaluate([50]).state == AlarmState.ALARM
        assert alarm.state == AlarmState.ALARM

    def test_at_threshold_is_ok(self) -> None:
        alarm = ThresholdAlarm("CanaryAlarm", threshold=90)
        assert alarm.evaluate([90]).state == AlarmState.OK

    def test_only_trailing_window_counts(self) -> None:
        alarm = ThresholdAlarm("CanaryAlarm", threshold=90)
        assert alarm.evaluate([10, 20, 100]).state == AlarmState.OK

    def test_multiple_evaluation_periods(self) -> None:
        alarm = ThresholdAlarm("CanaryAlarm", threshold=90, evaluation_periods=3, datapoints_to_alarm=2)
        assert alarm.evaluate([50, 100, 100]).state == AlarmState.OK
        assert alarm.evaluate([50, 100, 50]).state == AlarmState.ALARM

    def test_greater_than_comparison(self) -> None:
        alarm = ThresholdAlarm("Errors", threshold=5, comparison=ComparisonOperator.GREATER_THAN)
        assert alarm.evaluate([6]).state == AlarmState.ALARM
        assert alarm.evaluate([5]).state == AlarmState.OK

    @pytest.mark.parametrize(
        "policy,expected",
        [
            (MissingDataPolicy.BREACHING, AlarmState.ALARM),
            (MissingDataPolicy.NOT_BREACHING, AlarmState.OK),
            (MissingDataPolicy.MISSING, AlarmState.INSUFFICIENT_DATA),
            (MissingDataPolicy.IGNORE, AlarmState.INSUFFICIENT_DATA),
        ],
    )
    def test_missing_data_policies(self, policy: MissingDataPolicy, expected: AlarmState) -> None:
        alarm = ThresholdAlarm("CanaryAlarm", missing_data=policy)
        assert alarm.evaluate([None]).state == expected

    def test_empty_history_counts_as_missing(self) -> None:
        alarm = ThresholdAlarm("CanaryAlarm", missing_data=MissingDataPolicy.BREACHING)
        evaluation = alarm.evaluate([])
        assert evaluation.state == AlarmState.ALARM
        assert evaluation.datapoints == [None]

    def test_ignore_keeps_previous_state(self) -> None:
        alarm = ThresholdAlarm("CanaryAlarm", missing_data=MissingDataPolicy.IGNORE)
        alarm.evaluate([50])
        assert alarm.evaluate([50, None]).state == AlarmState.ALARM
        alarm.evaluate([100])
        assert alarm.evaluate([100, None]).state == AlarmState.OK

    def test_invalid_configuration(self) -> None:
        with pytest.raises(ValueError):
            ThresholdAlarm("CanaryAlarm", evaluation_periods=0)
        with pytest.raises(ValueError):
            ThresholdAlarm("CanaryAlarm", evaluation_periods=2, datapoints_to_alarm=3)


# ---------------------------------------------------------------------------
# TrafficShiftPolicy
# ---------------------------------------------------------------------------


class TestTrafficShiftPolicy:
    def test_canary_steps(self) -> None:
        policy = TrafficShiftPolicy(ShiftType.CANARY, percentage=99, interval_minutes=5)
        assert policy.steps() == [99, 100]
        assert policy.total_minutes == 5

    def test_linear_steps(self) -> None:
        policy = TrafficShiftPolicy(ShiftType.LINEAR, percentage=30, interval_minutes=1)
        assert policy.steps() == [30, 60, 90, 100]
        assert policy.total_minutes == 3

    def test_all_at_once(self) -> None:
        policy = TrafficShiftPolicy(ShiftType.ALL_AT_ONCE)
        assert policy.steps() == [100]
        assert policy.total_minutes == 0

    def test_from_settings(self) -> None:
        policy = TrafficShiftPolicy.from_settings("linear", 10, 2)
        assert policy.shift_type == ShiftType.LINEAR
        assert policy.to_dict()["steps"][-1] == 100

    @pytest.mark.parametrize("percentage", [0, 101])
    def test_invalid_percentage(self, percentage: int) -> None:
        with pytest.raises(ValueError):
            TrafficShiftPolicy(ShiftType.CANARY, percentage=percentage)

    def test_invalid_interval(self) -> None:
        with pytest.raises(ValueError):
            TrafficShiftPolicy(ShiftType.LINEAR, percentage=10, interval_minutes=0)


# ---------------------------------------------------------------------------
# HookExecutor
# ---------------------------------------------------------------------------


class TestHookExecutor:
    def test_success(self) -> None:
        calls: list[HookContext] = []
        result = HookExecutor(timeout_seconds=1).run(calls.append, _context())
        assert result.status == HookStatus.SUCCESS
        assert result.attempts == 1
        assert calls[0].deployment_id == "d-1"

    def test_error_is_retried_then_reported(self) -> None:
        attempts: list[int] = []

        def hook(context: HookContext) -> None:
            attempts.append(1)
            raise RuntimeError("permission denied")

        result = HookExecutor(timeout_seconds=1, max_attempts=2).run(hook, _context())
        assert result.status == HookStatus.ERROR
        assert result.error_message == "permission denied"
        assert result.attempts == 2
        assert len(attempts) == 2

    def test_recovers_on_second_attempt(self) -> None:
        attempts: list[int] = []

        def hook(context: HookContext) -> None:
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("throttled")

        result = HookExecutor(timeout_seconds=1, max_attempts=2).run(hook, _context())
        assert result.is_success
        assert result.attempts == 2

    def test_timeout(self) -> None:
        result = HookExecutor(timeout_seconds=0.05, max_attempts=1).run(
            lambda context: time.sleep(0.3), _context()
        )
        assert result.status == HookStatus.TIMEOUT
        assert "timed out" in result.error_message

    def test_timeout_is_final_and_settles(self) -> None:
        calls: list[int] = []

        def hook(context: HookContext) -> None:
            calls.append(1)
            time.sleep(0.2)

        executor = HookExecutor(timeout_seconds=0.05, max_attempts=3)
        result = executor.run(hook, _context())

        assert result.status == HookStatus.TIMEOUT
        assert result.attempts == 1
        assert executor.pending == 1
        assert executor.settle(timeout=2)
        assert executor.pending == 0
        assert calls == [1]

    def test_settle_gives_up_after_grace(self) -> None:
        executor = HookExecutor(timeout_seconds=0.05, max_attempts=1, grace_seconds=0.01)
        executor.run(lambda context: time.sleep(0.3), _context())
        assert executor.settle() is False
        assert executor.pending == 1
        assert executor.settle(timeout=2)

    def test_invalid_arguments(self) -> None:
        with pytest.raises(ValueError):
            HookExecutor(timeout_seconds=0)
        with pytest.raises(ValueError):
            HookExecutor(max_attempts=0)
