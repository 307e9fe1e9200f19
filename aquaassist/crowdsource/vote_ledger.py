"""
Vote ledger
Records community votes and keeps the tally and verification status in step.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from aquaassist.core.config import Settings, settings as default_settings
from aquaassist.core.exceptions import ConflictError, NotFoundError, ValidationError
from aquaassist.crowdsource.trust import TrustAdjustment, TrustScoreUpdater
from aquaassist.database.connection import DatabaseConnection
from aquaassist.database.models import Report, Vote, VoteDirection
from aquaassist.verification.combiner import VerificationCombiner

logger = logging.getLogger(__name__)


@dataclass
class VoteResult:
    """Tally and status as committed by a vote."""
    report_id: str
    direction: VoteDirection
    upvotes: int
    downvotes: int
    status: str
    confidence: float
    locked: bool = False
    trust_adjustments: List[TrustAdjustment] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.upvotes + self.downvotes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "report_id": self.report_id,
            "direction": self.direction.value,
            "community_votes": {
                "upvotes": self.upvotes,
                "downvotes": self.downvotes,
                "total": self.total,
            },
            "verification": {
                "status": self.status,
                "confidence": self.confidence,
                "locked": self.locked,
            },
        }


def parse_direction(direction: Any) -> VoteDirection:
    """Accept "up"/"down" (any case) or a VoteDirection."""
    if isinstance(direction, VoteDirection):
        return direction
    if not isinstance(direction, str) or not direction.strip():
        raise ValidationError("Vote direction is required")
    try:
        return VoteDirection(direction.strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid vote direction: {direction}. Use 'up' or 'down'")


class VoteLedger:
    """
    Community vote ledger.

    A vote, its tally increment and the recomputed verification status are
    committed together; a user already among the voters gets a conflict.
    Submitter trust changes owed at the vote thresholds are settled after
    the vote commits, either inline or by the caller via settle_trust().
    """

    def __init__(
        self,
        db: DatabaseConnection,
        combiner: Optional[VerificationCombiner] = None,
        trust_updater: Optional[TrustScoreUpdater] = None,
        config: Optional[Settings] = None
    ):
        self.db = db
        self.combiner = combiner or VerificationCombiner()
        self.config = config or default_settings
        self.trust_updater = trust_updater or TrustScoreUpdater(db, self.config)

    def cast_vote(
        self,
        report_id: str,
        user_id: str,
        direction: Any,
        settle_trust: bool = True
    ) -> VoteResult:
        """
        Record a vote on a report.

        Args:
            report_id: Report being voted on
            user_id: Voting user
            direction: "up" or "down"
            settle_trust: Apply the submitter's trust adjustments before
                returning. Pass False to defer them, then hand the result
                to settle_trust().

        Returns:
            VoteResult with the committed tally, status and the trust
            adjustments owed to the submitter

        Raises:
            ValidationError: Missing or invalid direction or user
            NotFoundError: Unknown report
            ConflictError: User already voted on this report
        """
        vote_direction = parse_direction(direction)
        if not user_id:
            raise ValidationError("Voter id is required")

        def record(session) -> VoteResult:
            report = session.get(Report, report_id)
            if report is None:
                raise NotFoundError(f"Report not found: {report_id}")

            existing = session.query(Vote.id).filter(
                Vote.report_id == report_id,
                Vote.user_id == user_id,
            ).first()
            if existing:
                raise ConflictError(f"User {user_id} already voted on report {report_id}")

            session.add(Vote(report_id=report_id, user_id=user_id, direction=vote_direction))
            if vote_direction == VoteDirection.UP:
                report.upvotes += 1
            else:
                report.downvotes += 1

            self.combiner.apply(report)
            session.flush()

            return VoteResult(
                report_id=report.id,
                direction=vote_direction,
                upvotes=report.upvotes,
                downvotes=report.downvotes,
                status=report.overall_status.value,
                confidence=report.confidence,
                locked=report.locked,
                trust_adjustments=self._threshold_adjustments(report),
            )

        try:
            result = self.db.run_transaction(
                record,
                max_retries=self.config.vote_max_retries,
                label=f"vote on report {report_id}",
            )
        except IntegrityError:
            raise ConflictError(f"User {user_id} already voted on report {report_id}")

        logger.info(
            f"Vote {vote_direction.value} by {user_id} on report {report_id} "
            f"(+{result.upvotes}/-{result.downvotes}, {result.status})"
        )
        if settle_trust:
            self.settle_trust(result)
        return result

    def settle_trust(self, result: VoteResult) -> int:
        """Apply the trust adjustments a vote produced; repeats are no-ops."""
        if not result.trust_adjustments:
            return 0
        return self.trust_updater.apply_all(result.trust_adjustments)

    def _threshold_adjustments(self, report: Report) -> List[TrustAdjustment]:
        """Trust changes owed to the submitter at the current net tally."""
        threshold = self.config.trust_vote_threshold
        net = report.upvotes - report.downvotes

        if net >= threshold:
            return [TrustAdjustment(
                user_id=report.submitter_id,
                event_key=f"votes_confirmed:{report.id}",
                delta=self.config.trust_delta_votes_confirmed,
            )]
        if -net >= threshold:
            return [TrustAdjustment(
                user_id=report.submitter_id,
                event_key=f"votes_refuted:{report.id}",
                delta=self.config.trust_delta_votes_refuted,
            )]
        return []

    def voters(self, report_id: str) -> List[str]:
        """Ids of users who voted on a report, in vote order."""
        with self.db.get_session() as session:
            rows = session.query(Vote.user_id).filter(
                Vote.report_id == report_id
            ).order_by(Vote.id).all()
            return [row.user_id for row in rows]
