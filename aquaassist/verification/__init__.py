"""
Aqua Assist - Verification Module
Combines evidence channels and community votes into a verification status.
"""

from aquaassist.verification.combiner import (
    VerificationCombiner,
    Combination,
    combine,
)
from aquaassist.verification.service import VerificationService, EvaluationOutcome
from aquaassist.verification.bulk import BulkVerificationScheduler, BulkResult

__all__ = [
    # Combiner
    "VerificationCombiner",
    "Combination",
    "combine",
    # Service
    "VerificationService",
    "EvaluationOutcome",
    # Bulk
    "BulkVerificationScheduler",
    "BulkResult",
]
