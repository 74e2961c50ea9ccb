"""Tests for PerformanceTracker."""

import pytest

from pairpilot.models import Capability, HealthStatus
from pairpilot.tracking.performance_tracker import PerformanceTracker


def _record(tracker, capability=Capability.TAPAS, success=True, latency=100.0, output="HOLD"):
    return tracker.record_prediction(
        capability,
        "model-x",
        "input text",
        output if success else None,
        latency,
        success=success,
        error=None if success else "boom",
    )


class TestRecordPrediction:
    def test_assigns_prediction_id(self, tracker):
        record = _record(tracker)
        assert record.id.startswith("pred_")
        assert record.capability is Capability.TAPAS

    def test_ids_are_unique(self, tracker):
        ids = {_record(tracker).id for _ in range(20)}
        assert len(ids) == 20

    def test_metrics_are_incremental_means(self, tracker):
        _record(tracker, success=True, latency=100.0)
        _record(tracker, success=False, latency=300.0)
        _record(tracker, success=True, latency=200.0)

        metrics = tracker.metrics(Capability.TAPAS)
        assert metrics.total_count == 3
        assert metrics.success_rate == pytest.approx(2 / 3)
        assert metrics.error_rate == pytest.approx(1 / 3)
        assert metrics.average_latency_ms == pytest.approx(200.0)
        assert metrics.last_used is not None

    def test_capabilities_are_independent(self, tracker):
        _record(tracker, capability=Capability.TAPAS)
        assert tracker.metrics(Capability.BART).total_count == 0
        assert tracker.recent_predictions(Capability.BART) == []

    def test_long_input_is_truncated(self, tracker):
        record = tracker.record_prediction(
            Capability.BART, "m", "x" * 2000, "ok", 1.0, success=True
        )
        assert len(record.input) == 503
        assert record.input.endswith("...")

    def test_capacity_evicts_oldest(self):
        tracker = PerformanceTracker(capacity=3)
        records = [_record(tracker) for _ in range(5)]
        kept = tracker.predictions(Capability.TAPAS)
        assert [r.id for r in kept] == [r.id for r in records[2:]]
        # metrics keep counting past eviction
        assert tracker.metrics(Capability.TAPAS).total_count == 5

    def test_recent_predictions_newest_first(self, tracker):
        records = [_record(tracker) for _ in range(4)]
        recent = tracker.recent_predictions(Capability.TAPAS, limit=2)
        assert [r.id for r in recent] == [records[3].id, records[2].id]

    def test_metrics_returns_copy(self, tracker):
        _record(tracker)
        snapshot = tracker.metrics(Capability.TAPAS)
        snapshot.total_count = 999
        assert tracker.metrics(Capability.TAPAS).total_count == 1


class TestRecordOutcome:
    def test_accuracy_is_correct_over_graded(self, tracker):
        first = _record(tracker)
        second = _record(tracker)
        third = _record(tracker)
        tracker.record_outcome(first.id, True, "price rose")
        tracker.record_outcome(second.id, False, "price fell")
        tracker.record_outcome(third.id, True, "price rose", notes="late fill")

        assert tracker.metrics(Capability.TAPAS).accuracy == pytest.approx(2 / 3)
        assert len(tracker.outcomes()) == 3
        assert tracker.outcomes()[2].notes == "late fill"

    def test_accuracy_is_none_until_graded(self, tracker):
        _record(tracker)
        assert tracker.metrics(Capability.TAPAS).accuracy is None

    def test_accuracy_scoped_to_prediction_capability(self, tracker):
        tapas = _record(tracker, capability=Capability.TAPAS)
        _record(tracker, capability=Capability.DECISION)
        tracker.record_outcome(tapas.id, False, "wrong")
        assert tracker.metrics(Capability.TAPAS).accuracy == 0.0
        assert tracker.metrics(Capability.DECISION).accuracy is None

    def test_unknown_prediction_raises_key_error(self, tracker):
        with pytest.raises(KeyError):
            tracker.record_outcome("pred_missing", True, "n/a")

    def test_evicted_prediction_cannot_be_graded(self):
        tracker = PerformanceTracker(capacity=1)
        old = _record(tracker)
        _record(tracker)
        with pytest.raises(KeyError):
            tracker.record_outcome(old.id, True, "n/a")


class TestHealthAndSnapshot:
    def test_health_defaults_to_unknown(self, tracker):
        assert tracker.health(Capability.DISTILBERT).status is HealthStatus.UNKNOWN

    def test_update_health(self, tracker):
        tracker.update_health(Capability.DISTILBERT, HealthStatus.DEGRADED, 42.0, "Rate limit exceeded")
        health = tracker.health(Capability.DISTILBERT)
        assert health.status is HealthStatus.DEGRADED
        assert health.last_latency_ms == 42.0
        assert health.last_error == "Rate limit exceeded"
        assert health.last_checked is not None

    def test_snapshot_covers_every_capability(self, tracker):
        _record(tracker, capability=Capability.BART)
        snap = tracker.snapshot()
        assert set(snap["metrics"]) == set(Capability)
        assert set(snap["health"]) == set(Capability)
        assert len(snap["predictions"]) == 1
        assert snap["outcomes"] == []

    def test_predictions_merged_in_time_order(self, tracker):
        a = _record(tracker, capability=Capability.BART)
        b = _record(tracker, capability=Capability.TAPAS)
        c = _record(tracker, capability=Capability.BART)
        merged = tracker.predictions()
        assert {r.id for r in merged} == {a.id, b.id, c.id}
        assert [r.timestamp for r in merged] == sorted(r.timestamp for r in merged)

    def test_clear_resets_everything(self, tracker):
        record = _record(tracker)
        tracker.record_outcome(record.id, True, "ok")
        tracker.update_health(Capability.TAPAS, HealthStatus.CONNECTED, 1.0)
        tracker.clear()

        assert tracker.predictions() == []
        assert tracker.outcomes() == []
        assert tracker.metrics(Capability.TAPAS).total_count == 0
        assert tracker.health(Capability.TAPAS).status is HealthStatus.UNKNOWN
        with pytest.raises(KeyError):
            tracker.record_outcome(record.id, True, "ok")
