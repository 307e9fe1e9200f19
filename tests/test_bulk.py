"""
Tests for the bulk verification scheduler
"""
from datetime import timedelta

import pytest

from aquaassist.core.exceptions import ValidationError
from aquaassist.database.models import ChannelStatus, ReportKind, VerificationStatus, utcnow
from aquaassist.verification.bulk import BulkResult, BulkVerificationScheduler
from aquaassist.verification.service import VerificationService

OUTCOME_FIELDS = ("verified", "partially_verified", "disputed", "manual_review", "pending", "failed")


def outcome_total(result: BulkResult) -> int:
    return sum(getattr(result, name) for name in OUTCOME_FIELDS)


class TestBulkVerificationScheduler:
    """Test suite for bulk verification runs."""

    @pytest.fixture(autouse=True)
    def setup(self, db, config, stub_signal):
        self.db = db
        self.config = config
        self.adapters = [
            stub_signal("weather", ChannelStatus.VERIFIED),
            stub_signal("news", ChannelStatus.VERIFIED),
            stub_signal("social", ChannelStatus.NOT_AVAILABLE),
        ]
        self.service = VerificationService(db, adapters=self.adapters, config=config)
        self.scheduler = BulkVerificationScheduler(self.service, config=config)

    @pytest.mark.asyncio
    async def test_processes_oldest_pending_up_to_limit(self, make_report):
        # report i is i minutes old; the 20 oldest are ages 5..24
        ids_by_age = {age: make_report(age_minutes=age) for age in range(25)}

        result = await self.scheduler.run_bulk(20)

        assert result.processed == 20
        assert outcome_total(result) == 20
        assert result.verified == 20
        assert result.skipped == 0

        evaluated = set(self.adapters[0].calls)
        assert evaluated == {ids_by_age[age] for age in range(5, 25)}

        statuses = self.service.status
        assert statuses(ids_by_age[0])["verification"]["status"] == "pending"
        assert statuses(ids_by_age[24])["verification"]["status"] == "verified"

    @pytest.mark.asyncio
    async def test_skips_locked_and_evaluated_reports(self, make_report):
        make_report(locked=True)
        make_report(overall_status=VerificationStatus.VERIFIED, confidence=1.0)
        pending_id = make_report()

        result = await self.scheduler.run_bulk(10)

        assert result.processed == 1
        assert self.adapters[0].calls == [pending_id]

    @pytest.mark.asyncio
    async def test_abandoned_claim_is_picked_up(self, make_report):
        report_id = make_report(
            claim_token="crashed-worker",
            claimed_at=utcnow() - timedelta(seconds=self.config.claim_ttl_seconds + 3600),
        )

        result = await self.scheduler.run_bulk(5)

        assert result.processed == 1
        assert result.verified == 1
        assert self.adapters[0].calls == [report_id]
        assert self.service.status(report_id)["verification"]["in_evaluation"] is False

    @pytest.mark.asyncio
    async def test_reports_left_pending_do_not_starve_newer_ones(self, make_report, stub_signal):
        adapters = [
            stub_signal("weather", ChannelStatus.NOT_AVAILABLE),
            stub_signal("news", ChannelStatus.NOT_AVAILABLE),
            stub_signal("social", ChannelStatus.NOT_AVAILABLE),
        ]
        scheduler = BulkVerificationScheduler(
            VerificationService(self.db, adapters=adapters, config=self.config),
            config=self.config,
        )
        old_issues = [
            make_report(kind=ReportKind.WATER_ISSUE, age_minutes=age) for age in (30, 20)
        ]

        first = await scheduler.run_bulk(2)
        assert first.pending == 2
        assert sorted(adapters[0].calls) == sorted(old_issues)

        newer_flood = make_report(age_minutes=1)
        await scheduler.run_bulk(2)

        assert newer_flood in adapters[0].calls[2:]

    @pytest.mark.asyncio
    async def test_claimed_reports_are_not_selected(self, make_report):
        claimed_id = make_report(age_minutes=10)
        free_id = make_report()
        token = self.service.claim(claimed_id)

        result = await self.scheduler.run_bulk(5)

        assert result.processed == 1
        assert self.adapters[0].calls == [free_id]
        self.service.release(claimed_id, token)

    @pytest.mark.asyncio
    async def test_report_claimed_after_selection_is_skipped(self, make_report, monkeypatch):
        first = make_report(age_minutes=2)
        second = make_report(age_minutes=1)
        original_select = self.scheduler.select_candidates

        def select_then_race(limit):
            candidates = original_select(limit)
            self.service.claim(first)
            return candidates

        monkeypatch.setattr(self.scheduler, "select_candidates", select_then_race)

        result = await self.scheduler.run_bulk(5)

        assert result.skipped == 1
        assert result.processed == 1
        assert self.adapters[0].calls == [second]

    @pytest.mark.asyncio
    async def test_failure_on_one_report_does_not_abort_batch(self, make_report, monkeypatch):
        bad = make_report(age_minutes=3)
        good = make_report(age_minutes=1)
        original_evaluate = self.service.evaluate

        async def flaky_evaluate(report_id):
            if report_id == bad:
                raise RuntimeError("storage hiccup")
            return await original_evaluate(report_id)

        monkeypatch.setattr(self.service, "evaluate", flaky_evaluate)

        result = await self.scheduler.run_bulk(5)

        assert result.processed == 2
        assert result.failed == 1
        assert result.verified == 1
        assert outcome_total(result) == result.processed
        # Claim released after the failure
        assert self.service.status(bad)["verification"]["in_evaluation"] is False
        assert self.service.status(good)["verification"]["status"] == "verified"

    @pytest.mark.asyncio
    async def test_outcome_counts_by_status(self, make_report, stub_signal):
        adapters = [
            stub_signal("weather", ChannelStatus.NOT_MATCHED),
            stub_signal("news", ChannelStatus.NOT_MATCHED),
            stub_signal("social", ChannelStatus.NOT_AVAILABLE),
        ]
        scheduler = BulkVerificationScheduler(
            VerificationService(self.db, adapters=adapters, config=self.config),
            config=self.config,
        )
        for _ in range(3):
            make_report()

        result = await scheduler.run_bulk(3)

        assert result.disputed == 3
        assert outcome_total(result) == result.processed == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 51, -1, "20"])
    async def test_limit_validated(self, limit):
        with pytest.raises(ValidationError):
            await self.scheduler.run_bulk(limit)

    @pytest.mark.asyncio
    async def test_default_limit(self, make_report):
        for _ in range(3):
            make_report()

        result = await self.scheduler.run_bulk()

        assert result.processed == 3

    def test_result_dict(self):
        result = BulkResult()
        result.record(VerificationStatus.PARTIALLY_VERIFIED)
        result.record(VerificationStatus.REJECTED)
        result.record_failure()

        assert result.to_dict() == {
            "processed": 3,
            "verified": 0,
            "partially_verified": 1,
            "disputed": 1,
            "manual_review": 0,
            "pending": 0,
            "failed": 1,
            "skipped": 0,
        }
