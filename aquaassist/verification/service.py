"""
Verification service
Cross-checks a report against the signal adapters and stores the outcome.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_, update

from aquaassist.core.config import Settings, settings as default_settings
from aquaassist.core.exceptions import ConflictError, NotFoundError
from aquaassist.crowdsource.trust import TrustAdjustment, TrustScoreUpdater
from aquaassist.database.connection import DatabaseConnection
from aquaassist.database.models import Report, VerificationStatus, utcnow
from aquaassist.ingestion import ChannelResult, SignalAdapter, SignalQuery, build_adapters
from aquaassist.verification.combiner import VerificationCombiner

logger = logging.getLogger(__name__)

_reports = Report.__table__


@dataclass
class EvaluationOutcome:
    """Stored result of one evaluation pass."""
    report_id: str
    status: VerificationStatus
    confidence: float
    locked: bool
    channels: List[ChannelResult]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_id": self.report_id,
            "status": self.status.value,
            "confidence": self.confidence,
            "locked": self.locked,
            "channels": {result.channel: result.to_dict() for result in self.channels},
        }


class VerificationService:
    """
    Runs the evidence channels for a report and records their verdicts.

    A report is evaluated by at most one caller at a time: the evaluator
    claims it with a conditional update, queries the adapters outside any
    transaction, then stores the results and recomputes the status in one
    short transaction before releasing the claim.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        adapters: Optional[Sequence[SignalAdapter]] = None,
        combiner: Optional[VerificationCombiner] = None,
        trust_updater: Optional[TrustScoreUpdater] = None,
        config: Optional[Settings] = None
    ):
        """
        Initialize the service.

        Args:
            db: Database connection
            adapters: Signal adapters (weather, news, social from settings by default)
            combiner: Verification combiner
            trust_updater: Trust score updater for auto-verified reports
            config: Settings
        """
        self.db = db
        self.config = config or default_settings
        self.adapters = list(adapters) if adapters is not None else build_adapters(self.config)
        self.combiner = combiner or VerificationCombiner()
        self.trust_updater = trust_updater or TrustScoreUpdater(db, self.config)

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim(self, report_id: str, pending_only: bool = False) -> Optional[str]:
        """
        Claim a report for evaluation.

        Claims older than claim_ttl_seconds are considered abandoned and can
        be taken over.

        Args:
            report_id: Report to claim
            pending_only: Only claim reports still at pending status

        Returns:
            Claim token, or None if the report is locked or claimed elsewhere
        """
        token = uuid.uuid4().hex
        now = utcnow()
        stale_cutoff = now - timedelta(seconds=self.config.claim_ttl_seconds)

        stmt = update(_reports).where(
            _reports.c.id == report_id,
            _reports.c.locked.is_(False),
            or_(_reports.c.claim_token.is_(None), _reports.c.claimed_at < stale_cutoff),
        )
        if pending_only:
            stmt = stmt.where(_reports.c.overall_status == VerificationStatus.PENDING)
        stmt = stmt.values(claim_token=token, claimed_at=now)

        with self.db.get_session() as session:
            claimed = session.execute(stmt).rowcount == 1

        if not claimed:
            logger.debug(f"Report {report_id} not claimable")
            return None
        return token

    def release(self, report_id: str, token: str) -> bool:
        """Release a claim if it is still held with this token."""
        stmt = update(_reports).where(
            _reports.c.id == report_id,
            _reports.c.claim_token == token,
        ).values(claim_token=None, claimed_at=None)

        with self.db.get_session() as session:
            released = session.execute(stmt).rowcount == 1

        if not released:
            logger.warning(f"Claim on report {report_id} was lost before release")
        return released

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def gather_signals(self, query: SignalQuery) -> List[ChannelResult]:
        """Query every adapter concurrently and collect their verdicts."""
        raw_results = await asyncio.gather(
            *[adapter.lookup(query) for adapter in self.adapters],
            return_exceptions=True,
        )

        results = []
        for adapter, result in zip(self.adapters, raw_results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"{adapter.channel} adapter failed for report {query.report_id}: {result!r}"
                )
                result = ChannelResult.unavailable(adapter.channel, f"{adapter.channel} adapter failed")
            results.append(result)
        return results

    async def evaluate(self, report_id: str) -> EvaluationOutcome:
        """
        Query the adapters and store their verdicts on a claimed report.

        The caller holds the claim.
        """
        with self.db.get_session() as session:
            report = session.get(Report, report_id)
            if report is None:
                raise NotFoundError(f"Report not found: {report_id}")
            query = SignalQuery.from_report(
                report,
                lookback_hours=self.config.signal_lookback_hours,
                lookahead_hours=self.config.signal_lookahead_hours,
            )

        results = await self.gather_signals(query)

        def store(session) -> EvaluationOutcome:
            report = session.get(Report, report_id)
            if report is None:
                raise NotFoundError(f"Report {report_id} was deleted during evaluation")

            for result in results:
                report.set_channel(result.channel, result.status, result.stored_snapshot())
            self.combiner.apply(report)

            if report.overall_status == VerificationStatus.VERIFIED and not report.locked:
                self.trust_updater.apply_in_session(session, TrustAdjustment(
                    user_id=report.submitter_id,
                    event_key=f"auto_verified:{report.id}",
                    delta=self.config.trust_delta_auto_verified,
                ))
            session.flush()

            return EvaluationOutcome(
                report_id=report.id,
                status=report.overall_status,
                confidence=report.confidence,
                locked=report.locked,
                channels=results,
            )

        outcome = self.db.run_transaction(
            store,
            max_retries=self.config.vote_max_retries,
            label=f"verification of report {report_id}",
        )
        logger.info(
            f"Report {report_id} evaluated: {outcome.status.value} "
            f"(confidence {outcome.confidence})"
        )
        return outcome

    async def verify_report(self, report_id: str) -> Dict[str, Any]:
        """
        Verify a single report on demand.

        Args:
            report_id: Report to verify

        Returns:
            Verification view after the evaluation

        Raises:
            NotFoundError: Unknown report
            ConflictError: Report locked by a moderator or already being evaluated
        """
        with self.db.get_session() as session:
            report = session.get(Report, report_id)
            if report is None:
                raise NotFoundError(f"Report not found: {report_id}")
            if report.locked:
                raise ConflictError(f"Report {report_id} is locked by moderation")

        token = self.claim(report_id)
        if token is None:
            raise ConflictError(f"Report {report_id} is already being evaluated")

        try:
            await self.evaluate(report_id)
        finally:
            self.release(report_id, token)

        return self.status(report_id)

    def status(self, report_id: str) -> Dict[str, Any]:
        """Current verification record and tally of a report."""
        with self.db.get_session() as session:
            report = session.get(Report, report_id)
            if report is None:
                raise NotFoundError(f"Report not found: {report_id}")
            return {
                "report_id": report.id,
                "kind": report.kind.value,
                "verification": report.verification_dict(),
                "community_votes": report.tally_dict(),
            }
