"""
Aqua Assist - Signal adapter base
Common contract for the weather, news and social evidence channels.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from aquaassist.core.constants import FLOOD_KEYWORDS, WATER_ISSUE_KEYWORDS, SEARCH_TERMS
from aquaassist.core.exceptions import UpstreamUnavailable
from aquaassist.database.models import ChannelStatus, Report, ReportKind, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignalQuery:
    """
    Immutable view of a report handed to the adapters.

    Adapters never see the ORM object, so they cannot change report state.
    """
    report_id: str
    kind: ReportKind
    district: str
    state: str
    latitude: float
    longitude: float
    window_start: datetime
    window_end: datetime

    @classmethod
    def from_report(
        cls,
        report: Report,
        lookback_hours: int = 72,
        lookahead_hours: int = 24,
        now: Optional[datetime] = None
    ) -> "SignalQuery":
        now = now or utcnow()
        created_at = report.created_at or now
        return cls(
            report_id=report.id,
            kind=report.kind,
            district=report.district,
            state=report.state,
            latitude=report.latitude,
            longitude=report.longitude,
            window_start=created_at - timedelta(hours=lookback_hours),
            window_end=min(now, created_at + timedelta(hours=lookahead_hours)),
        )

    @property
    def location_query(self) -> str:
        return f"{self.district} {self.state}".strip()

    @property
    def search_terms(self) -> str:
        return SEARCH_TERMS[self.kind.value]

    @property
    def keywords(self) -> List[str]:
        if self.kind == ReportKind.WATER_ISSUE:
            return WATER_ISSUE_KEYWORDS
        return FLOOD_KEYWORDS


@dataclass
class ChannelResult:
    """Verdict of one channel with the raw evidence behind it."""
    channel: str
    status: ChannelStatus
    summary: str = ""
    snapshot: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def unavailable(cls, channel: str, reason: str) -> "ChannelResult":
        return cls(
            channel=channel,
            status=ChannelStatus.NOT_AVAILABLE,
            summary=reason,
            snapshot={"summary": reason},
        )

    def stored_snapshot(self) -> Dict[str, Any]:
        """Snapshot persisted on the report, always carrying the summary."""
        snapshot = dict(self.snapshot)
        snapshot.setdefault("summary", self.summary)
        return snapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "status": self.status.value,
            "summary": self.summary,
            "snapshot": self.snapshot,
        }


def mentions_any(text: Optional[str], keywords: List[str]) -> bool:
    """Case-insensitive keyword check."""
    if not text:
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


class SignalAdapter:
    """
    Base class for an evidence channel.

    Subclasses implement _lookup(). lookup() bounds it with the channel
    timeout and turns timeouts and upstream failures into not_available.
    """

    channel: str = ""

    def __init__(
        self,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the adapter.

        Args:
            timeout: Per-lookup timeout in seconds
            client: Shared HTTP client (created per lookup when omitted)
        """
        self.timeout = timeout
        self._client = client

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def lookup(self, query: SignalQuery) -> ChannelResult:
        """
        Query the channel for evidence about a report.

        Never raises for upstream problems.
        """
        try:
            return await asyncio.wait_for(self._lookup(query), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"{self.channel} lookup for report {query.report_id} timed out after {self.timeout}s"
            )
            return ChannelResult.unavailable(
                self.channel, f"{self.channel} source timed out after {self.timeout}s"
            )
        except (httpx.HTTPError, UpstreamUnavailable, ValueError, KeyError, TypeError) as e:
            logger.warning(f"{self.channel} lookup for report {query.report_id} failed: {e}")
            return ChannelResult.unavailable(self.channel, f"{self.channel} source unavailable: {e}")

    async def _lookup(self, query: SignalQuery) -> ChannelResult:
        raise NotImplementedError
