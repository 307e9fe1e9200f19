"""
Aqua Assist - Crowdsource Module
Citizen reports, community votes, trust scores and moderation.
"""

from aquaassist.crowdsource.trust import (
    TrustAdjustment,
    TrustScoreUpdater,
    ensure_user,
)
from aquaassist.crowdsource.report_handler import ReportHandler
from aquaassist.crowdsource.vote_ledger import (
    VoteLedger,
    VoteResult,
    parse_direction,
)
from aquaassist.crowdsource.moderation import ModerationWorkflow

__all__ = [
    # Trust
    "TrustAdjustment",
    "TrustScoreUpdater",
    "ensure_user",
    # Report Handler
    "ReportHandler",
    # Votes
    "VoteLedger",
    "VoteResult",
    "parse_direction",
    # Moderation
    "ModerationWorkflow",
]
