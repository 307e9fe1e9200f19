"""
Trust score updater
Applies bounded, idempotent trust adjustments to report submitters.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aquaassist.core.config import Settings, settings as default_settings
from aquaassist.database.connection import DatabaseConnection
from aquaassist.database.models import TrustEvent, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustAdjustment:
    """
    A trust change owed to a user for one triggering event.

    event_key identifies the event (e.g. "moderator_verified:<report id>");
    an adjustment with a key already applied to the user is a no-op.
    """
    user_id: str
    event_key: str
    delta: int
    count_verified_report: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "event_key": self.event_key,
            "delta": self.delta,
        }


def ensure_user(session: Session, user_id: str, config: Optional[Settings] = None) -> User:
    """Load a user, creating it with the default trust score on first sight."""
    config = config or default_settings
    user = session.get(User, user_id)
    if user is None:
        user = User(
            id=user_id,
            trust_score=config.trust_score_default,
            verified_reports=0,
        )
        session.add(user)
        session.flush()
        logger.info(f"Created user {user_id} with trust score {config.trust_score_default}")
    return user


class TrustScoreUpdater:
    """
    Sole writer of User.trust_score.

    Every increment is a single clamped UPDATE guarded by a TrustEvent row
    unique on (user_id, event_key), both in the caller's transaction.
    """

    def __init__(self, db: DatabaseConnection, config: Optional[Settings] = None):
        self.db = db
        self.config = config or default_settings

    def apply_in_session(self, session: Session, adjustment: TrustAdjustment) -> bool:
        """
        Apply an adjustment inside an open transaction.

        Returns:
            True if applied, False if the event was already counted
        """
        already_applied = session.query(TrustEvent.id).filter(
            TrustEvent.user_id == adjustment.user_id,
            TrustEvent.event_key == adjustment.event_key,
        ).first()
        if already_applied:
            logger.debug(f"Trust event {adjustment.event_key} already applied to {adjustment.user_id}")
            return False

        ensure_user(session, adjustment.user_id, self.config)
        session.add(TrustEvent(
            user_id=adjustment.user_id,
            event_key=adjustment.event_key,
            delta=adjustment.delta,
        ))

        low, high = self.config.trust_score_min, self.config.trust_score_max
        shifted = User.trust_score + adjustment.delta
        values = {
            User.trust_score: case(
                (shifted > high, high),
                (shifted < low, low),
                else_=shifted,
            )
        }
        if adjustment.count_verified_report:
            values[User.verified_reports] = User.verified_reports + 1

        session.query(User).filter(User.id == adjustment.user_id).update(
            values, synchronize_session=False
        )
        session.flush()

        logger.info(
            f"Trust {adjustment.delta:+d} for user {adjustment.user_id} ({adjustment.event_key})"
        )
        return True

    def apply(self, adjustment: TrustAdjustment) -> bool:
        """
        Apply an adjustment in its own transaction.

        A concurrent writer of the same event makes this a no-op.
        """
        try:
            with self.db.get_session() as session:
                return self.apply_in_session(session, adjustment)
        except IntegrityError:
            logger.debug(f"Trust event {adjustment.event_key} raced with another writer")
            return False

    def apply_all(self, adjustments: Iterable[TrustAdjustment]) -> int:
        """Apply several adjustments, each in its own transaction."""
        return sum(1 for adjustment in adjustments if self.apply(adjustment))

    def get_trust(self, user_id: str) -> Dict[str, Any]:
        """Trust profile of a user; unknown users report the default score."""
        with self.db.get_session() as session:
            user = session.get(User, user_id)
            if user is None:
                return {
                    "id": user_id,
                    "display_name": None,
                    "trust_score": self.config.trust_score_default,
                    "verified_reports": 0,
                }
            return user.to_dict()
