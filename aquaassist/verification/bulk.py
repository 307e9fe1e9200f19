"""
Bulk verification scheduler
Periodically verifies pending reports with bounded concurrency.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from aquaassist.core.config import Settings, settings as default_settings
from aquaassist.core.exceptions import ValidationError
from aquaassist.database.models import Report, VerificationStatus, utcnow
from aquaassist.verification.service import VerificationService

logger = logging.getLogger(__name__)


@dataclass
class BulkResult:
    """
    Outcome counts of a bulk run.

    verified + partially_verified + disputed + manual_review + pending +
    failed always equals processed. skipped counts reports another
    evaluator claimed first and is not part of processed.
    """
    processed: int = 0
    verified: int = 0
    partially_verified: int = 0
    disputed: int = 0
    manual_review: int = 0
    pending: int = 0
    failed: int = 0
    skipped: int = 0

    def record(self, status: VerificationStatus) -> None:
        """Count one evaluated report by its resulting status."""
        self.processed += 1
        if status == VerificationStatus.VERIFIED:
            self.verified += 1
        elif status == VerificationStatus.PARTIALLY_VERIFIED:
            self.partially_verified += 1
        elif status == VerificationStatus.MANUAL_REVIEW:
            self.manual_review += 1
        elif status == VerificationStatus.PENDING:
            self.pending += 1
        else:
            # not_matched, or rejected by a moderator mid-run
            self.disputed += 1

    def record_failure(self) -> None:
        self.processed += 1
        self.failed += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


class BulkVerificationScheduler:
    """
    Verifies batches of pending reports.

    Each report is claimed before evaluation, so concurrent runs and
    on-demand verification never evaluate the same report twice at once.
    A failure on one report never aborts the batch.
    """

    def __init__(
        self,
        service: VerificationService,
        config: Optional[Settings] = None
    ):
        self.service = service
        self.db = service.db
        self.config = config or service.config or default_settings

    def select_candidates(self, limit: int) -> List[str]:
        """
        Ids of pending, unlocked reports nobody is evaluating.

        Reports never evaluated come first, then the least recently
        evaluated, oldest first within each. Claims older than
        claim_ttl_seconds count as abandoned.
        """
        stale_cutoff = utcnow() - timedelta(seconds=self.config.claim_ttl_seconds)
        with self.db.get_session() as session:
            rows = session.query(Report.id).filter(
                Report.overall_status == VerificationStatus.PENDING,
                Report.locked.is_(False),
                or_(Report.claim_token.is_(None), Report.claimed_at < stale_cutoff),
            ).order_by(
                Report.last_evaluated_at.asc().nulls_first(),
                Report.created_at,
                Report.id,
            ).limit(limit).all()
            return [row.id for row in rows]

    async def run_bulk(self, limit: Optional[int] = None) -> BulkResult:
        """
        Verify up to limit pending reports, least recently evaluated first.

        Args:
            limit: Batch size (1 to bulk_max_limit, defaults to bulk_default_limit)

        Returns:
            BulkResult with per-outcome counts
        """
        if limit is None:
            limit = self.config.bulk_default_limit
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError("Limit must be an integer")
        if not 1 <= limit <= self.config.bulk_max_limit:
            raise ValidationError(f"Limit must be between 1 and {self.config.bulk_max_limit}")

        candidates = self.select_candidates(limit)
        result = BulkResult()
        logger.info(f"Bulk verification started: {len(candidates)} pending reports (limit {limit})")

        semaphore = asyncio.Semaphore(max(1, self.config.bulk_concurrency))

        async def verify_with_semaphore(report_id: str) -> Optional[VerificationStatus]:
            async with semaphore:
                token = self.service.claim(report_id, pending_only=True)
                if token is None:
                    return None
                try:
                    outcome = await self.service.evaluate(report_id)
                    return outcome.status
                finally:
                    self.service.release(report_id, token)

        raw_results = await asyncio.gather(
            *[verify_with_semaphore(report_id) for report_id in candidates],
            return_exceptions=True,
        )

        for report_id, outcome in zip(candidates, raw_results):
            if isinstance(outcome, BaseException):
                logger.error(f"Bulk verification failed for report {report_id}: {outcome!r}")
                result.record_failure()
            elif outcome is None:
                logger.debug(f"Report {report_id} claimed elsewhere, skipped")
                result.skipped += 1
            else:
                result.record(outcome)

        logger.info(
            f"Bulk verification complete: {result.processed} processed, "
            f"{result.verified} verified, {result.failed} failed, {result.skipped} skipped"
        )
        return result
