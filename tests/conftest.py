"""
Pytest configuration and fixtures
"""
import asyncio
import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from aquaassist.core.auth import Actor, Role
from aquaassist.core.config import Settings
from aquaassist.crowdsource.trust import ensure_user
from aquaassist.database.connection import DatabaseConnection
from aquaassist.database.models import (
    ChannelStatus,
    Report,
    ReportKind,
    Severity,
    User,
    utcnow,
)
from aquaassist.ingestion.base import ChannelResult, SignalAdapter


class StubSignal(SignalAdapter):
    """Adapter returning a fixed verdict, optionally after a delay."""

    def __init__(self, channel: str, status: ChannelStatus, delay: float = 0.0, error: Exception = None):
        super().__init__(timeout=1.0)
        self.channel = channel
        self.status = status
        self.delay = delay
        self.error = error
        self.calls = []

    async def _lookup(self, query):
        self.calls.append(query.report_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ChannelResult(self.channel, self.status, f"stub {self.status.value}", {"stub": True})


@pytest.fixture
def config():
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def db():
    """Fresh in-memory database."""
    database = DatabaseConnection("sqlite://")
    database.create_tables()
    yield database
    database.close()


@pytest.fixture
def file_db(tmp_path):
    """File-backed database shared by several threads."""
    database = DatabaseConnection(f"sqlite:///{tmp_path / 'aquaassist_test.db'}")
    database.create_tables()
    yield database
    database.close()


@pytest.fixture
def stub_signal():
    """Factory for StubSignal adapters."""
    return StubSignal


@pytest.fixture
def make_report(db):
    """Factory inserting a report directly and returning its id."""
    return _report_factory(db)


@pytest.fixture
def make_file_report(file_db):
    return _report_factory(file_db)


def _report_factory(database):
    def _make(
        kind=ReportKind.FLOOD,
        submitter_id="citizen-1",
        age_minutes=0,
        **overrides
    ):
        with database.get_session() as session:
            ensure_user(session, submitter_id)
            report = Report(
                kind=kind,
                submitter_id=submitter_id,
                district="Kamrup",
                state="Assam",
                latitude=26.14,
                longitude=91.73,
                description="Water entered houses on the main road",
                severity=Severity.HIGH,
                water_level="knee-deep" if kind == ReportKind.FLOOD else None,
                issue_type="supply-interruption" if kind == ReportKind.WATER_ISSUE else None,
                created_at=utcnow() - timedelta(minutes=age_minutes),
            )
            for key, value in overrides.items():
                setattr(report, key, value)
            session.add(report)
            session.flush()
            return report.id

    return _make


@pytest.fixture
def trust_of(db):
    """Read a user's trust score and verified report count."""
    def _trust(user_id):
        with db.get_session() as session:
            user = session.get(User, user_id)
            return (user.trust_score, user.verified_reports) if user else (None, None)

    return _trust


@pytest.fixture
def moderator():
    return Actor(user_id="mod-1", roles=frozenset({Role.MODERATOR}))


@pytest.fixture
def municipal():
    return Actor(user_id="muni-1", roles=frozenset({Role.MUNICIPAL}))


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", roles=frozenset({Role.ADMIN}))


@pytest.fixture
def citizen():
    return Actor(user_id="citizen-2", roles=frozenset({Role.CITIZEN}))
