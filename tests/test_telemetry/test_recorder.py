"""Tests for telemetry parsing, the in-memory sample store and the recorder."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from solarify_engine.alerts.engine import AlertEngine
from solarify_engine.alerts.store import InMemoryAlertStore
from solarify_engine.errors import ValidationError
from solarify_engine.telemetry.models import EquipmentStatus, parse_sample
from solarify_engine.telemetry.recorder import (
    STATUS_DUPLICATE,
    STATUS_FAILED,
    STATUS_RECORDED,
    BatchResult,
    PerformanceRecorder,
)
from solarify_engine.telemetry.store import InMemorySampleStore, SampleStore

from conftest import DEFAULT_THRESHOLDS, NOW


@pytest.fixture
def recorder(sample_store, alert_engine) -> PerformanceRecorder:
    return PerformanceRecorder(sample_store, alert_engine)


class TestSampleParsing:
    def test_parse_valid_sample(self, make_sample) -> None:
        sample = parse_sample(make_sample())
        assert sample.equipment_id == "INV-001"
        assert sample.realtime.status == EquipmentStatus.NORMAL
        assert sample.quality.score == pytest.approx(95.0)
        assert sample.is_online

    def test_naive_timestamp_is_utc(self, make_sample) -> None:
        sample = parse_sample(make_sample(timestamp=datetime(2026, 6, 1, 12)))
        assert sample.timestamp.tzinfo == timezone.utc

    def test_offset_timestamp_converted(self, make_sample) -> None:
        local = datetime(2026, 6, 1, 14, tzinfo=timezone(timedelta(hours=2)))
        sample = parse_sample(make_sample(timestamp=local))
        assert sample.timestamp == datetime(2026, 6, 1, 12, tzinfo=timezone.utc)

    def test_out_of_range_efficiency(self, make_sample) -> None:
        with pytest.raises(ValidationError) as exc_info:
            parse_sample(make_sample(efficiency=120))
        assert exc_info.value.errors[0].field == "realtime.efficiency"

    def test_unknown_status(self, make_sample) -> None:
        with pytest.raises(ValidationError):
            parse_sample(make_sample(status="exploded"))


class TestInMemorySampleStore:
    @pytest.mark.asyncio
    async def test_range_is_inclusive_and_ordered(self, make_sample) -> None:
        store = InMemorySampleStore()
        for hours in (3, 1, 2):
            await store.upsert_sample(parse_sample(make_sample(timestamp=NOW + timedelta(hours=hours))))
        samples = await store.get_samples(
            "INV-001", NOW + timedelta(hours=1), NOW + timedelta(hours=2),
        )
        assert [s.timestamp for s in samples] == [
            NOW + timedelta(hours=1), NOW + timedelta(hours=2),
        ]
        latest = await store.get_latest_sample("INV-001")
        assert latest.timestamp == NOW + timedelta(hours=3)

    @pytest.mark.asyncio
    async def test_duplicate_key_rejected(self, make_sample) -> None:
        store = InMemorySampleStore()
        assert await store.upsert_sample(parse_sample(make_sample()))
        assert not await store.upsert_sample(parse_sample(make_sample(efficiency=50)))
        assert store.count("INV-001") == 1
        assert (await store.get_latest_sample("INV-001")).realtime.efficiency == 95.0

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemorySampleStore(), SampleStore)


class TestPerformanceRecorder:
    @pytest.mark.asyncio
    async def test_record_sample(self, recorder, sample_store, make_sample) -> None:
        result = await recorder.record(make_sample())
        assert result.status == STATUS_RECORDED
        assert result.success
        assert sample_store.count() == 1

    @pytest.mark.asyncio
    async def test_idempotent_ingest(
        self, recorder, sample_store, alert_engine: AlertEngine, make_sample,
    ) -> None:
        await alert_engine.set_alert_thresholds("INV-001", DEFAULT_THRESHOLDS)
        first = await recorder.record(make_sample(efficiency=70))
        second = await recorder.record(make_sample(efficiency=70))
        assert first.status == STATUS_RECORDED
        assert len(first.alerts) == 1
        assert second.status == STATUS_DUPLICATE
        assert second.alerts == []
        assert sample_store.count("INV-001") == 1
        assert len(await alert_engine.get_active_alerts("INV-001")) == 1

    @pytest.mark.asyncio
    async def test_invalid_single_sample_raises(self, recorder, make_sample) -> None:
        with pytest.raises(ValidationError):
            await recorder.record(make_sample(performance_ratio=-5))

    @pytest.mark.asyncio
    async def test_batch_isolates_failures(self, recorder, sample_store, make_sample) -> None:
        bad = make_sample(equipment_id="INV-002")
        del bad["realtime"]
        batch = await recorder.record_batch([
            make_sample(timestamp=NOW),
            bad,
            make_sample(timestamp=NOW + timedelta(minutes=5)),
        ])
        assert batch.processed == 3
        assert batch.successful == 2
        assert batch.failed == 1
        assert batch.success_rate == 66.67
        failed = batch.results[1]
        assert failed.status == STATUS_FAILED
        assert failed.equipment_id == "INV-002"
        assert failed.error["details"][0]["field"] == "realtime"
        assert sample_store.count() == 2

    @pytest.mark.asyncio
    async def test_batch_duplicates_count_as_success(self, recorder, make_sample) -> None:
        batch = await recorder.record_batch([make_sample(), make_sample()])
        assert batch.successful == 2
        assert [r.status for r in batch.results] == [STATUS_RECORDED, STATUS_DUPLICATE]

    @pytest.mark.asyncio
    async def test_batch_collects_alerts(self, recorder, alert_engine, make_sample) -> None:
        await alert_engine.set_alert_thresholds("INV-001", DEFAULT_THRESHOLDS)
        batch = await recorder.record_batch([make_sample(efficiency=70, temperature=90)])
        assert {a.triggered_by.value for a in batch.alerts} == {"efficiency", "temperature"}
        assert len(batch.to_dict()["alerts"]) == 2

    def test_empty_batch_success_rate(self) -> None:
        assert BatchResult([]).success_rate == 0.0


class FlakyAlertStore(InMemoryAlertStore):
    """Alert store whose first open-alert lookup fails."""

    def __init__(self) -> None:
        super().__init__()
        self.failures = 1

    async def get_open_alert(self, equipment_id, dimension):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("alert store unavailable")
        return await super().get_open_alert(equipment_id, dimension)


class TestRetryAfterAlertFailure:
    @pytest.mark.asyncio
    async def test_retried_delivery_raises_alert(self, sample_store, make_sample) -> None:
        alerts = AlertEngine(FlakyAlertStore())
        await alerts.set_alert_thresholds("INV-001", DEFAULT_THRESHOLDS)
        recorder = PerformanceRecorder(sample_store, alerts)

        first = await recorder.record_batch([make_sample(efficiency=70)])
        assert first.results[0].status == STATUS_FAILED
        assert sample_store.count("INV-001") == 1

        retry = await recorder.record_batch([make_sample(efficiency=70)])
        [result] = retry.results
        assert result.status == STATUS_DUPLICATE
        assert [a.triggered_by.value for a in result.alerts] == ["efficiency"]
        assert len(await alerts.get_active_alerts("INV-001")) == 1
