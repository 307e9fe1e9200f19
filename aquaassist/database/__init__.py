"""
Database module for Aqua Assist
Report, vote, trust and moderation persistence
"""

from .connection import DatabaseConnection, get_db, init_db
from .models import (
    Base,
    User,
    Report,
    Vote,
    TrustEvent,
    ModerationAction,
    ReportKind,
    Severity,
    ChannelStatus,
    VerificationStatus,
    LifecycleStatus,
    VoteDirection,
    ModerationActionType,
    CHANNELS,
)

__all__ = [
    "DatabaseConnection",
    "get_db",
    "init_db",
    "Base",
    "User",
    "Report",
    "Vote",
    "TrustEvent",
    "ModerationAction",
    "ReportKind",
    "Severity",
    "ChannelStatus",
    "VerificationStatus",
    "LifecycleStatus",
    "VoteDirection",
    "ModerationActionType",
    "CHANNELS",
]
