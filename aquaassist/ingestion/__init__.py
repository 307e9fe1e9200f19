"""
Aqua Assist - Signal Ingestion Module
Adapters querying external evidence sources about a report.
"""

from typing import List, Optional

import httpx

from aquaassist.core.config import Settings, settings as default_settings
from aquaassist.ingestion.base import (
    ChannelResult,
    SignalAdapter,
    SignalQuery,
    mentions_any,
)
from aquaassist.ingestion.weather_client import WeatherSignal, RainfallSummary
from aquaassist.ingestion.news_client import NewsSignal
from aquaassist.ingestion.social_client import SocialSignal


def build_adapters(
    config: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None
) -> List[SignalAdapter]:
    """
    Create the weather, news and social adapters from settings.

    Args:
        config: Settings to read endpoints and credentials from
        client: Optional shared HTTP client

    Returns:
        One adapter per channel
    """
    config = config or default_settings
    timeout = config.signal_timeout_seconds
    return [
        WeatherSignal(timeout=timeout, client=client, base_url=config.weather_api_url),
        NewsSignal(
            api_key=config.news_api_key,
            timeout=timeout,
            client=client,
            base_url=config.news_api_url,
        ),
        SocialSignal(
            api_url=config.social_api_url,
            access_token=config.social_access_token,
            timeout=timeout,
            client=client,
        ),
    ]


__all__ = [
    "ChannelResult",
    "SignalAdapter",
    "SignalQuery",
    "mentions_any",
    # Weather
    "WeatherSignal",
    "RainfallSummary",
    # News
    "NewsSignal",
    # Social
    "SocialSignal",
    "build_adapters",
]
