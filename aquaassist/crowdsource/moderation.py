"""
Moderation workflow
Moderator overrides, municipal responses and the report lifecycle.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from aquaassist.core.auth import (
    Actor,
    MODERATION_ROLES,
    MUNICIPAL_ROLES,
    OVERRIDE_ROLES,
    require_roles,
)
from aquaassist.core.config import Settings, settings as default_settings
from aquaassist.core.constants import MAX_REASON_LENGTH
from aquaassist.core.exceptions import ConflictError, NotFoundError, ValidationError
from aquaassist.crowdsource.trust import TrustAdjustment, TrustScoreUpdater
from aquaassist.database.connection import DatabaseConnection
from aquaassist.database.models import (
    LIFECYCLE_SEQUENCES,
    LifecycleStatus,
    ModerationAction,
    ModerationActionType,
    Report,
    ReportKind,
    VerificationStatus,
    utcnow,
)
from aquaassist.verification.combiner import VerificationCombiner

logger = logging.getLogger(__name__)


def parse_action(action: Any) -> ModerationActionType:
    if isinstance(action, ModerationActionType):
        return action
    try:
        return ModerationActionType(str(action).strip().lower())
    except ValueError:
        valid = ", ".join(a.value for a in ModerationActionType)
        raise ValidationError(f"Invalid moderation action: {action}. Valid: {valid}")


def parse_lifecycle(status: Any) -> LifecycleStatus:
    if isinstance(status, LifecycleStatus):
        return status
    try:
        return LifecycleStatus(str(status).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid lifecycle status: {status}")


class ModerationWorkflow:
    """
    Human override of verification and handling of the lifecycle axis.

    verify and reject set a terminal status and lock the report so that
    later votes and channel results no longer recompute it. Every
    moderate() call appends a ModerationAction.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        combiner: Optional[VerificationCombiner] = None,
        trust_updater: Optional[TrustScoreUpdater] = None,
        config: Optional[Settings] = None
    ):
        self.db = db
        self.config = config or default_settings
        self.combiner = combiner or VerificationCombiner()
        self.trust_updater = trust_updater or TrustScoreUpdater(db, self.config)

    def _load(self, session, report_id: str) -> Report:
        report = session.get(Report, report_id)
        if report is None:
            raise NotFoundError(f"Report not found: {report_id}")
        return report

    def moderate(
        self,
        report_id: str,
        actor: Actor,
        action: Any,
        reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Apply a moderator decision.

        Args:
            report_id: Report to moderate
            actor: Caller, needs moderator, admin or municipal capability
            action: verify, reject or needs_manual_review
            reason: Optional free-text justification

        Returns:
            Updated report with the recorded action
        """
        require_roles(actor, MODERATION_ROLES, "Moderation")
        action_type = parse_action(action)
        if reason and len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(f"Reason exceeds {MAX_REASON_LENGTH} characters")

        def apply(session) -> Dict[str, Any]:
            report = self._load(session, report_id)
            now = utcnow()

            if action_type == ModerationActionType.NEEDS_MANUAL_REVIEW:
                self._escalate(report, actor, now)
            else:
                self._override(session, report, actor, action_type)

            record = ModerationAction(
                report_id=report.id,
                moderator_id=actor.user_id,
                action=action_type,
                reason=reason,
                created_at=now,
            )
            session.add(record)
            session.flush()

            result = report.to_dict()
            result["moderation_action"] = record.to_dict()
            return result

        result = self.db.run_transaction(apply, label=f"moderation of report {report_id}")
        logger.info(f"Report {report_id} moderated by {actor.user_id}: {action_type.value}")
        return result

    def _escalate(self, report: Report, actor: Actor, now: datetime) -> None:
        if report.locked and report.overall_status == VerificationStatus.MANUAL_REVIEW:
            logger.debug(f"Report {report.id} already escalated")
            return

        report.overall_status = VerificationStatus.MANUAL_REVIEW
        report.verification_summary = "Flagged for manual review by moderator"
        report.locked = True
        report.locked_by = actor.user_id
        if report.escalated_at is None:
            report.escalated_at = now
            logger.info(f"Report {report.id} escalated to manual review")

    def _override(
        self,
        session,
        report: Report,
        actor: Actor,
        action_type: ModerationActionType
    ) -> None:
        if action_type == ModerationActionType.VERIFY:
            report.overall_status = VerificationStatus.VERIFIED
            report.verification_summary = "Manually verified by moderator"
            adjustment = TrustAdjustment(
                user_id=report.submitter_id,
                event_key=f"moderator_verified:{report.id}",
                delta=self.config.trust_delta_moderator_verified,
                count_verified_report=True,
            )
        else:
            report.overall_status = VerificationStatus.REJECTED
            report.verification_summary = "Rejected by moderator"
            adjustment = TrustAdjustment(
                user_id=report.submitter_id,
                event_key=f"moderator_rejected:{report.id}",
                delta=self.config.trust_delta_moderator_rejected,
            )

        report.locked = True
        report.locked_by = actor.user_id
        self.trust_updater.apply_in_session(session, adjustment)

    def clear_override(self, report_id: str, actor: Actor) -> Dict[str, Any]:
        """
        Lift a moderator lock and recompute from stored channels and votes.

        Args:
            report_id: Locked report
            actor: Caller, needs moderator or admin capability

        Returns:
            Updated report
        """
        require_roles(actor, OVERRIDE_ROLES, "Clearing a moderation lock")

        def apply(session) -> Dict[str, Any]:
            report = self._load(session, report_id)
            report.locked = False
            report.locked_by = None
            self.combiner.apply(report)
            session.flush()
            return report.to_dict()

        result = self.db.run_transaction(apply, label=f"unlock of report {report_id}")
        logger.info(f"Moderation lock on report {report_id} cleared by {actor.user_id}")
        return result

    def respond(
        self,
        report_id: str,
        actor: Actor,
        message: str,
        action_taken: Optional[str] = None,
        estimated_fix_time: Optional[datetime] = None,
        contact_person: Optional[str] = None,
        contact_number: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Attach the municipality response to a water issue.

        A report holds at most one response; the lifecycle moves to at
        least acknowledged.
        """
        require_roles(actor, MUNICIPAL_ROLES, "Municipality response")
        if not message or not message.strip():
            raise ValidationError("Response message is required")

        def apply(session) -> Dict[str, Any]:
            report = self._load(session, report_id)
            if report.kind != ReportKind.WATER_ISSUE:
                raise ValidationError("Municipality responses apply to water issues only")
            if report.has_response:
                raise ConflictError(f"Report {report_id} already has a municipality response")

            report.responded_at = utcnow()
            report.responded_by = actor.user_id
            report.response_message = message.strip()
            report.response_action_taken = action_taken
            report.response_estimated_fix_time = estimated_fix_time
            report.response_contact_person = contact_person
            report.response_contact_number = contact_number

            sequence = LIFECYCLE_SEQUENCES[report.kind]
            if sequence.index(report.lifecycle_status) < sequence.index(LifecycleStatus.ACKNOWLEDGED):
                report.lifecycle_status = LifecycleStatus.ACKNOWLEDGED

            session.flush()
            return report.to_dict()

        result = self.db.run_transaction(apply, label=f"response to report {report_id}")
        logger.info(f"Municipality response recorded on report {report_id} by {actor.user_id}")
        return result

    def advance_lifecycle(self, report_id: str, actor: Actor, status: Any) -> Dict[str, Any]:
        """
        Move a report forward in its lifecycle.

        Skipping stages is allowed; moving backward is a conflict and
        stages that do not exist for the report kind are invalid.
        Re-applying the current stage changes nothing.
        """
        require_roles(actor, MUNICIPAL_ROLES, "Lifecycle update")
        target = parse_lifecycle(status)

        def apply(session) -> Dict[str, Any]:
            report = self._load(session, report_id)
            sequence = LIFECYCLE_SEQUENCES[report.kind]
            if target not in sequence:
                raise ValidationError(
                    f"Status {target.value} does not apply to {report.kind.value} reports"
                )

            current = sequence.index(report.lifecycle_status)
            requested = sequence.index(target)
            if requested < current:
                raise ConflictError(
                    f"Cannot move report {report_id} back from "
                    f"{report.lifecycle_status.value} to {target.value}"
                )

            if requested > current:
                report.lifecycle_status = target
                if requested >= sequence.index(LifecycleStatus.RESOLVED) and report.resolved_at is None:
                    report.resolved_at = utcnow()
                session.flush()

            return report.to_dict()

        result = self.db.run_transaction(apply, label=f"lifecycle update of report {report_id}")
        logger.info(f"Report {report_id} lifecycle now {result['lifecycle_status']}")
        return result

    def history(self, report_id: str) -> List[Dict[str, Any]]:
        """
        Moderation actions on a report, oldest first.

        History outlives the report itself.
        """
        with self.db.get_session() as session:
            actions = session.query(ModerationAction).filter(
                ModerationAction.report_id == report_id
            ).order_by(ModerationAction.created_at, ModerationAction.id).all()

            if not actions and session.get(Report, report_id) is None:
                raise NotFoundError(f"Report not found: {report_id}")

            return [action.to_dict() for action in actions]
