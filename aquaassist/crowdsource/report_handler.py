"""
Report handler for crowdsourced data
Receives flood reports and water issues from citizens and serves
report lookups and statistics.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from aquaassist.core.auth import Actor, ADMIN_ROLES, require_roles
from aquaassist.core.config import Settings, settings as default_settings
from aquaassist.core.constants import (
    FLOOD_WATER_LEVELS,
    WATER_ISSUE_TYPES,
    MAX_DESCRIPTION_LENGTH,
    MEDIA_URL_PATTERN,
    HIGH_CONFIDENCE,
    LOW_CONFIDENCE,
)
from aquaassist.core.exceptions import NotFoundError, ValidationError
from aquaassist.crowdsource.trust import ensure_user
from aquaassist.database.connection import DatabaseConnection
from aquaassist.database.models import (
    LifecycleStatus,
    Report,
    ReportKind,
    Severity,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

_MEDIA_URL = re.compile(MEDIA_URL_PATTERN, re.IGNORECASE)


def _parse_enum(enum_cls, value: Any, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label}: {value}. Valid: {valid}")


class ReportHandler:
    """
    Handles incident reports from citizens.

    Every report starts with a pending verification record and all three
    channels pending.
    """

    def __init__(self, db: DatabaseConnection, config: Optional[Settings] = None):
        """
        Initialize report handler.

        Args:
            db: Database connection
            config: Settings (trust defaults for new submitters)
        """
        self.db = db
        self.config = config or default_settings

    def create_report(
        self,
        kind: Any,
        submitter_id: str,
        district: str,
        state: str,
        latitude: float,
        longitude: float,
        description: str,
        severity: Any = Severity.MEDIUM,
        address: Optional[str] = None,
        landmark: Optional[str] = None,
        media_files: Optional[List[str]] = None,
        water_level: Optional[str] = None,
        issue_type: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a new flood report or water issue.

        Args:
            kind: flood or water_issue
            submitter_id: Reporting user
            district: District name
            state: State name
            latitude: Report latitude
            longitude: Report longitude
            description: What the citizen observed
            severity: low, medium, high or critical
            address: Street address
            landmark: Nearby landmark
            media_files: Photo or video URLs
            water_level: Observed water level (floods)
            issue_type: Kind of supply problem (water issues, required)

        Returns:
            Created report
        """
        report_kind = _parse_enum(ReportKind, kind, "report kind")
        report_severity = _parse_enum(Severity, severity, "severity")

        if not submitter_id:
            raise ValidationError("Submitter id is required")
        if not district or not district.strip() or not state or not state.strip():
            raise ValidationError("District and state are required")
        if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
            raise ValidationError(f"Invalid coordinates: ({latitude}, {longitude})")

        description = (description or "").strip()
        if not description:
            raise ValidationError("Description is required")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters")

        media_files = list(media_files or [])
        for url in media_files:
            if not _MEDIA_URL.match(url):
                raise ValidationError(f"Invalid media file URL: {url}")

        if report_kind == ReportKind.FLOOD:
            if issue_type is not None:
                raise ValidationError("issue_type applies to water issues only")
            if water_level is not None and water_level not in FLOOD_WATER_LEVELS:
                raise ValidationError(f"Invalid water level: {water_level}")
        else:
            if water_level is not None:
                raise ValidationError("water_level applies to flood reports only")
            if issue_type not in WATER_ISSUE_TYPES:
                raise ValidationError(f"Invalid issue type: {issue_type}")

        def store(session) -> Dict[str, Any]:
            ensure_user(session, submitter_id, self.config)
            report = Report(
                kind=report_kind,
                submitter_id=submitter_id,
                district=district.strip(),
                state=state.strip(),
                latitude=latitude,
                longitude=longitude,
                address=address,
                landmark=landmark,
                description=description,
                severity=report_severity,
                media_files=media_files,
                water_level=water_level,
                issue_type=issue_type,
            )
            session.add(report)
            session.flush()
            return report.to_dict()

        try:
            result = self.db.run_transaction(store, label="report creation")
        except IntegrityError:
            # Submitter row created concurrently; it exists now
            result = self.db.run_transaction(store, label="report creation")

        logger.info(
            f"New {report_kind.value} report created: {result['id']} "
            f"in {result['location']['district']}, {result['location']['state']}"
        )
        return result

    def get_report(self, report_id: str) -> Dict[str, Any]:
        """Get report by ID."""
        with self.db.get_session() as session:
            report = session.get(Report, report_id)
            if report is None:
                raise NotFoundError(f"Report not found: {report_id}")
            return report.to_dict()

    def delete_report(self, report_id: str, actor: Actor) -> None:
        """
        Delete a report and its votes. Moderation history is kept.

        Args:
            report_id: Report to delete
            actor: Caller, must be an admin
        """
        require_roles(actor, ADMIN_ROLES, "Report deletion")

        with self.db.get_session() as session:
            report = session.get(Report, report_id)
            if report is None:
                raise NotFoundError(f"Report not found: {report_id}")
            session.delete(report)

        logger.warning(f"Report {report_id} deleted by {actor.user_id}")

    def get_statistics(self) -> Dict[str, Any]:
        """Get report statistics."""
        with self.db.get_session() as session:
            total = session.query(func.count(Report.id)).scalar() or 0

            def grouped(column) -> Dict[str, int]:
                rows = session.query(column, func.count(Report.id)).group_by(column).all()
                return {value.value: count for value, count in rows}

            by_status = grouped(Report.overall_status)
            by_lifecycle = grouped(Report.lifecycle_status)
            by_kind = grouped(Report.kind)

            ai_verified = session.query(func.count(Report.id)).filter(
                Report.overall_status == VerificationStatus.VERIFIED,
                Report.locked.is_(False),
            ).scalar() or 0
            high_confidence = session.query(func.count(Report.id)).filter(
                Report.confidence >= HIGH_CONFIDENCE
            ).scalar() or 0
            low_confidence = session.query(func.count(Report.id)).filter(
                Report.confidence > 0,
                Report.confidence < LOW_CONFIDENCE,
            ).scalar() or 0
            locked = session.query(func.count(Report.id)).filter(
                Report.locked.is_(True)
            ).scalar() or 0

        return {
            "total_reports": total,
            "by_status": {status.value: by_status.get(status.value, 0) for status in VerificationStatus},
            "by_lifecycle": {status.value: by_lifecycle.get(status.value, 0) for status in LifecycleStatus},
            "by_kind": {kind.value: by_kind.get(kind.value, 0) for kind in ReportKind},
            "ai_verified": ai_verified,
            "manual_review": by_status.get(VerificationStatus.MANUAL_REVIEW.value, 0),
            "high_confidence": high_confidence,
            "low_confidence": low_confidence,
            "locked": locked,
        }
