"""
Aqua Assist - Vercel Serverless Entry Point
Serves the FastAPI app: reports, verification, votes, moderation
"""

import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from aquaassist.api.main import app

# Vercel serverless handler
handler = app
