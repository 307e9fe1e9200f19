"""
Aqua Assist
Verification and moderation engine for crowd-submitted flood reports
and water-supply issues.
"""

__version__ = "1.0.0"
