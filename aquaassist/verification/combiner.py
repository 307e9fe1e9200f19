"""
Verification combiner
Merges the three channel verdicts and the community vote tally into one
overall verification status and confidence.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from aquaassist.core.constants import (
    VOTE_WEIGHT,
    VERIFIED_THRESHOLD,
    PARTIAL_THRESHOLD,
    CONFIDENCE_PRECISION,
)
from aquaassist.database.models import (
    CHANNELS,
    ChannelStatus,
    Report,
    VerificationStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class Combination:
    """Result of combining channel verdicts and votes."""
    status: VerificationStatus
    confidence: float
    verified_channels: int
    not_matched_channels: int
    raw_score: float = 0.0
    vote_adjustment: float = 0.0
    summary: str = ""

    @property
    def usable_channels(self) -> int:
        return self.verified_channels + self.not_matched_channels

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "confidence": self.confidence,
            "verified_channels": self.verified_channels,
            "not_matched_channels": self.not_matched_channels,
            "usable_channels": self.usable_channels,
            "raw_score": self.raw_score,
            "vote_adjustment": self.vote_adjustment,
            "summary": self.summary,
        }


class VerificationCombiner:
    """
    Deterministic, order-independent combination of evidence.

    Channels at not_available or pending are excluded from the denominator.
    Community votes move the raw channel score by at most VOTE_WEIGHT.
    Strong disagreement between channels escalates to manual review
    regardless of the numeric score.
    """

    def __init__(
        self,
        vote_weight: float = VOTE_WEIGHT,
        verified_threshold: float = VERIFIED_THRESHOLD,
        partial_threshold: float = PARTIAL_THRESHOLD
    ):
        self.vote_weight = vote_weight
        self.verified_threshold = verified_threshold
        self.partial_threshold = partial_threshold

    def combine(
        self,
        channel_statuses: Iterable[ChannelStatus],
        upvotes: int = 0,
        downvotes: int = 0
    ) -> Combination:
        """
        Combine channel verdicts and votes.

        Args:
            channel_statuses: Verdict of each channel (any order)
            upvotes: Current community upvotes
            downvotes: Current community downvotes

        Returns:
            Combination with status and confidence
        """
        statuses = list(channel_statuses)
        verified = sum(1 for s in statuses if s == ChannelStatus.VERIFIED)
        not_matched = sum(1 for s in statuses if s == ChannelStatus.NOT_MATCHED)
        usable = verified + not_matched

        if usable == 0:
            return Combination(
                status=VerificationStatus.PENDING,
                confidence=0.0,
                verified_channels=0,
                not_matched_channels=0,
                summary="No evidence channel available yet",
            )

        raw_score = verified / usable
        vote_adjustment = (upvotes - downvotes) / max(1, upvotes + downvotes)
        confidence = raw_score + self.vote_weight * vote_adjustment
        confidence = round(max(0.0, min(1.0, confidence)), CONFIDENCE_PRECISION)

        status = self._determine_status(confidence, verified, not_matched)

        return Combination(
            status=status,
            confidence=confidence,
            verified_channels=verified,
            not_matched_channels=not_matched,
            raw_score=round(raw_score, CONFIDENCE_PRECISION),
            vote_adjustment=round(vote_adjustment, CONFIDENCE_PRECISION),
            summary=self._summarize(status, verified, not_matched),
        )

    def apply(self, report: Report) -> Optional[Combination]:
        """
        Recompute and store the verification status of a report in place.

        Uses the stored channel verdicts and the current tally. Does nothing
        while a moderator override holds the report.

        Returns:
            The Combination written, or None when the report is locked
        """
        if report.locked:
            logger.debug(f"Report {report.id} is locked by moderation; skipping recompute")
            return None

        combination = self.combine(
            (report.get_channel(channel) for channel in CHANNELS),
            upvotes=report.upvotes,
            downvotes=report.downvotes,
        )

        report.overall_status = combination.status
        report.confidence = combination.confidence
        report.verification_summary = combination.summary
        report.last_evaluated_at = utcnow()

        return combination

    def _determine_status(
        self,
        confidence: float,
        verified: int,
        not_matched: int
    ) -> VerificationStatus:
        """Map counts and confidence to a status."""
        usable = verified + not_matched

        # Comparable corroboration and contradiction cannot be resolved automatically
        if verified > 0 and not_matched > 0 and abs(verified - not_matched) <= 1 and usable >= 2:
            return VerificationStatus.MANUAL_REVIEW

        if confidence >= self.verified_threshold:
            return VerificationStatus.VERIFIED
        if confidence >= self.partial_threshold:
            return VerificationStatus.PARTIALLY_VERIFIED
        if not_matched >= 1:
            return VerificationStatus.NOT_MATCHED
        return VerificationStatus.PARTIALLY_VERIFIED

    def _summarize(
        self,
        status: VerificationStatus,
        verified: int,
        not_matched: int
    ) -> str:
        usable = verified + not_matched
        if status == VerificationStatus.VERIFIED:
            return f"Verified through {verified} of {usable} available data sources"
        if status == VerificationStatus.PARTIALLY_VERIFIED:
            return f"Partially verified ({verified} of {usable} sources agree), needs review"
        if status == VerificationStatus.MANUAL_REVIEW:
            return (
                f"Sources disagree ({verified} corroborating, {not_matched} contradicting), "
                f"needs manual review"
            )
        return "Could not verify through available data sources"


def combine(
    weather: ChannelStatus,
    news: ChannelStatus,
    social: ChannelStatus,
    upvotes: int = 0,
    downvotes: int = 0
) -> Combination:
    """
    Convenience function to combine the three channel verdicts.

    Args:
        weather: Weather channel verdict
        news: News channel verdict
        social: Social media channel verdict
        upvotes: Community upvotes
        downvotes: Community downvotes

    Returns:
        Combination
    """
    return VerificationCombiner().combine([weather, news, social], upvotes, downvotes)
