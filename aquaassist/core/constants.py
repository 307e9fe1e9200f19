"""
Aqua Assist - Constants and Reference Data
Static values used throughout the application.
"""

from typing import Dict, List

# =============================================================================
# SIGNAL KEYWORDS
# =============================================================================

# Terms that corroborate a flood report in news articles and social posts
FLOOD_KEYWORDS: List[str] = [
    "flood",
    "flooding",
    "flooded",
    "water level",
    "rising water",
    "heavy rain",
    "rainfall",
    "overflow",
    "evacuation",
    "submerged",
    "rescue",
]

# Terms that corroborate a water-supply issue
WATER_ISSUE_KEYWORDS: List[str] = [
    "water supply",
    "water shortage",
    "water cut",
    "pipeline",
    "pipe burst",
    "contamination",
    "contaminated",
    "leak",
    "low pressure",
    "water quality",
]

# Search prefixes sent to upstream news and social search, per report kind
SEARCH_TERMS: Dict[str, str] = {
    "flood": "flood water level",
    "water_issue": "water supply",
}

# =============================================================================
# WEATHER THRESHOLDS (flood corroboration)
# =============================================================================

HEAVY_HOURLY_RAIN_MM = 15.0
HEAVY_DAILY_RAIN_MM = 50.0
SATURATED_HUMIDITY_PERCENT = 90.0
MODERATE_HOURLY_RAIN_MM = 5.0
MODERATE_DAILY_RAIN_MM = 20.0

# =============================================================================
# COMBINER
# =============================================================================

VOTE_WEIGHT = 0.15
VERIFIED_THRESHOLD = 0.75
PARTIAL_THRESHOLD = 0.4
CONFIDENCE_PRECISION = 4

HIGH_CONFIDENCE = 0.8
LOW_CONFIDENCE = 0.5

# =============================================================================
# REPORT INTAKE
# =============================================================================

MAX_DESCRIPTION_LENGTH = 1000
MAX_REASON_LENGTH = 500

MEDIA_URL_PATTERN = r"^https?://.+\.(jpg|jpeg|png|gif|mp4|avi|mov)$"

FLOOD_WATER_LEVELS: List[str] = [
    "minor-pooling",
    "ankle-deep",
    "knee-deep",
    "waist-deep",
    "chest-deep",
    "above-head",
    "window-level",
    "roof-level",
    "above-roof",
]

WATER_ISSUE_TYPES: List[str] = [
    "supply-interruption",
    "low-pressure",
    "water-quality",
    "contamination",
    "leakage",
    "infrastructure",
    "other",
]
