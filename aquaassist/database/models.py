"""
SQLAlchemy models for Aqua Assist
Reports carry their verification record and vote tally as embedded columns so
that a single versioned row serializes every mutation of one report.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import (
    Column, Integer, Float, String, Text, Boolean, JSON,
    DateTime, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_report_id() -> str:
    return uuid.uuid4().hex


def _enum_column(enum_cls, **kwargs) -> Column:
    """Enum column storing the enum values rather than member names."""
    return Column(
        SQLEnum(
            enum_cls,
            values_callable=lambda e: [member.value for member in e],
            native_enum=False,
            length=40,
        ),
        **kwargs
    )


class ReportKind(str, enum.Enum):
    """Kind of submitted incident."""
    FLOOD = "flood"
    WATER_ISSUE = "water_issue"


class Severity(str, enum.Enum):
    """Severity claimed by the submitter."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChannelStatus(str, enum.Enum):
    """Verdict of one evidence channel."""
    NOT_AVAILABLE = "not_available"
    PENDING = "pending"
    VERIFIED = "verified"
    NOT_MATCHED = "not_matched"


class VerificationStatus(str, enum.Enum):
    """Overall verification status of a report."""
    PENDING = "pending"
    VERIFIED = "verified"
    PARTIALLY_VERIFIED = "partially_verified"
    NOT_MATCHED = "not_matched"
    MANUAL_REVIEW = "manual_review"
    REJECTED = "rejected"  # moderator only


class LifecycleStatus(str, enum.Enum):
    """Operational handling stage, independent of verification."""
    REPORTED = "reported"
    UNDER_INVESTIGATION = "under_investigation"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    SCHEDULED = "scheduled"
    RESOLVED = "resolved"
    CLOSED = "closed"


# Forward-only order of lifecycle stages per report kind
LIFECYCLE_SEQUENCES = {
    ReportKind.WATER_ISSUE: [
        LifecycleStatus.REPORTED,
        LifecycleStatus.UNDER_INVESTIGATION,
        LifecycleStatus.ACKNOWLEDGED,
        LifecycleStatus.IN_PROGRESS,
        LifecycleStatus.SCHEDULED,
        LifecycleStatus.RESOLVED,
        LifecycleStatus.CLOSED,
    ],
    ReportKind.FLOOD: [
        LifecycleStatus.REPORTED,
        LifecycleStatus.UNDER_INVESTIGATION,
        LifecycleStatus.RESOLVED,
        LifecycleStatus.CLOSED,
    ],
}


class VoteDirection(str, enum.Enum):
    UP = "up"
    DOWN = "down"


class ModerationActionType(str, enum.Enum):
    """Actions a moderator can take on a report."""
    VERIFY = "verify"
    REJECT = "reject"
    NEEDS_MANUAL_REVIEW = "needs_manual_review"


CHANNELS = ("weather", "news", "social")


class User(Base):
    """
    Reputation aggregate for a platform user.

    Only the trust score updater writes trust_score.
    """
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    display_name = Column(String(120))
    trust_score = Column(Integer, nullable=False, default=100)
    verified_reports = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<User({self.id}, trust={self.trust_score})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "trust_score": self.trust_score,
            "verified_reports": self.verified_reports,
        }


class Report(Base):
    """
    Flood report or water issue submitted by a citizen.

    Location, description, severity and media are fixed at creation; the
    lifecycle status, verification record and vote tally change in place.
    """
    __tablename__ = "reports"

    id = Column(String(32), primary_key=True, default=new_report_id)
    kind = _enum_column(ReportKind, nullable=False)
    submitter_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)

    # Location
    district = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address = Column(String(300))
    landmark = Column(String(200))

    # Claim details
    description = Column(Text, nullable=False)
    severity = _enum_column(Severity, nullable=False)
    media_files = Column(JSON, default=list)
    water_level = Column(String(30))  # floods
    issue_type = Column(String(40))  # water issues

    # Lifecycle axis
    lifecycle_status = _enum_column(LifecycleStatus, nullable=False, default=LifecycleStatus.REPORTED)
    resolved_at = Column(DateTime)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Verification record
    weather_status = _enum_column(ChannelStatus, nullable=False, default=ChannelStatus.PENDING)
    weather_snapshot = Column(JSON)
    news_status = _enum_column(ChannelStatus, nullable=False, default=ChannelStatus.PENDING)
    news_snapshot = Column(JSON)
    social_status = _enum_column(ChannelStatus, nullable=False, default=ChannelStatus.PENDING)
    social_snapshot = Column(JSON)
    overall_status = _enum_column(VerificationStatus, nullable=False, default=VerificationStatus.PENDING)
    confidence = Column(Float, nullable=False, default=0.0)
    verification_summary = Column(Text)
    last_evaluated_at = Column(DateTime)

    # Moderator override
    locked = Column(Boolean, nullable=False, default=False)
    locked_by = Column(String(64))
    escalated_at = Column(DateTime)

    # Evaluation claim
    claim_token = Column(String(32))
    claimed_at = Column(DateTime)

    # Vote tally
    upvotes = Column(Integer, nullable=False, default=0)
    downvotes = Column(Integer, nullable=False, default=0)

    # Municipality response (water issues)
    responded_at = Column(DateTime)
    responded_by = Column(String(64))
    response_message = Column(Text)
    response_action_taken = Column(Text)
    response_estimated_fix_time = Column(DateTime)
    response_contact_person = Column(String(120))
    response_contact_number = Column(String(40))

    # Optimistic concurrency
    version = Column(Integer, nullable=False)

    votes = relationship(
        "Vote",
        back_populates="report",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_report_pending_queue", "overall_status", "created_at"),
        Index("idx_report_district_state", "district", "state"),
    )

    def __repr__(self):
        return f"<Report({self.id}, kind={self.kind.value}, status={self.overall_status.value})>"

    def get_channel(self, channel: str) -> ChannelStatus:
        return getattr(self, f"{channel}_status")

    def set_channel(
        self,
        channel: str,
        status: ChannelStatus,
        snapshot: Optional[Dict[str, Any]] = None
    ) -> None:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
        setattr(self, f"{channel}_status", status)
        setattr(self, f"{channel}_snapshot", snapshot)

    @property
    def has_response(self) -> bool:
        return self.responded_at is not None

    def verification_dict(self) -> dict:
        """Verification record for display and moderator review."""
        return {
            "status": self.overall_status.value,
            "confidence": self.confidence,
            "summary": self.verification_summary,
            "locked": self.locked,
            "last_evaluated_at": self.last_evaluated_at.isoformat() if self.last_evaluated_at else None,
            "escalated_at": self.escalated_at.isoformat() if self.escalated_at else None,
            "in_evaluation": self.claim_token is not None,
            "channels": {
                channel: {
                    "status": self.get_channel(channel).value,
                    "snapshot": getattr(self, f"{channel}_snapshot"),
                }
                for channel in CHANNELS
            },
        }

    def tally_dict(self) -> dict:
        return {
            "upvotes": self.upvotes,
            "downvotes": self.downvotes,
            "total": self.upvotes + self.downvotes,
        }

    def response_dict(self) -> Optional[dict]:
        if not self.has_response:
            return None
        return {
            "responded_at": self.responded_at.isoformat(),
            "responded_by": self.responded_by,
            "message": self.response_message,
            "action_taken": self.response_action_taken,
            "estimated_fix_time": (
                self.response_estimated_fix_time.isoformat()
                if self.response_estimated_fix_time else None
            ),
            "contact_person": self.response_contact_person,
            "contact_number": self.response_contact_number,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "submitter_id": self.submitter_id,
            "location": {
                "district": self.district,
                "state": self.state,
                "latitude": self.latitude,
                "longitude": self.longitude,
                "address": self.address,
                "landmark": self.landmark,
            },
            "description": self.description,
            "severity": self.severity.value,
            "media_files": list(self.media_files or []),
            "water_level": self.water_level,
            "issue_type": self.issue_type,
            "lifecycle_status": self.lifecycle_status.value,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "verification": self.verification_dict(),
            "community_votes": self.tally_dict(),
            "municipality_response": self.response_dict(),
        }


class Vote(Base):
    """One community vote; a user votes at most once per report."""
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(String(32), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=False)
    direction = _enum_column(VoteDirection, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    report = relationship("Report", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("report_id", "user_id", name="uq_vote_report_user"),
    )

    def __repr__(self):
        return f"<Vote({self.report_id}, user={self.user_id}, {self.direction.value})>"


class TrustEvent(Base):
    """
    Applied trust adjustment.

    The unique (user_id, event_key) pair makes each triggering event count once.
    """
    __tablename__ = "trust_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    event_key = Column(String(120), nullable=False)
    delta = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "event_key", name="uq_trust_event"),
    )


class ModerationAction(Base):
    """
    Append-only moderation audit record.

    report_id is not a foreign key so history survives a report delete.
    """
    __tablename__ = "moderation_actions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(String(32), nullable=False, index=True)
    moderator_id = Column(String(64), nullable=False)
    action = _enum_column(ModerationActionType, nullable=False)
    reason = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "report_id": self.report_id,
            "moderator_id": self.moderator_id,
            "action": self.action.value,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
