"""
Aqua Assist - Social Media Signal
Looks for public posts mentioning the incident near the report location.
"""

from typing import Any, Dict, List, Optional

import httpx

from aquaassist.database.models import ChannelStatus
from aquaassist.ingestion.base import ChannelResult, SignalAdapter, SignalQuery, mentions_any


class SocialSignal(SignalAdapter):
    """
    Social media channel backed by a configurable post search endpoint.

    The endpoint receives q/since/until/limit query parameters with a bearer
    token and returns {"data": [{"id", "caption" or "text", "permalink",
    "timestamp"}, ...]}.
    """

    channel = "social"

    def __init__(
        self,
        api_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        limit: int = 25
    ):
        super().__init__(timeout=timeout, client=client)
        self.api_url = api_url
        self.access_token = access_token
        self.limit = limit

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.access_token)

    async def search_posts(self, query: SignalQuery) -> List[Dict[str, Any]]:
        """Fetch posts for the report location and window."""
        params = {
            "q": f"{query.search_terms} {query.location_query}",
            "since": query.window_start.isoformat(timespec="seconds"),
            "until": query.window_end.isoformat(timespec="seconds"),
            "limit": self.limit,
        }
        headers = {"Authorization": f"Bearer {self.access_token}"}

        async with self._http() as client:
            response = await client.get(self.api_url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()

        posts = data.get("data")
        if posts is None:
            raise ValueError("Social search response has no data field")
        return posts

    async def _lookup(self, query: SignalQuery) -> ChannelResult:
        if not self.is_configured:
            return ChannelResult.unavailable(self.channel, "Social media API not configured")

        posts = await self.search_posts(query)
        relevant = [
            post for post in posts
            if mentions_any(post.get("caption") or post.get("text"), query.keywords)
        ]

        snapshot = {
            "source": "social",
            "posts_found": len(posts),
            "matching_posts": len(relevant),
            "posts": [
                {
                    "id": post.get("id"),
                    "permalink": post.get("permalink"),
                    "timestamp": post.get("timestamp"),
                }
                for post in relevant[:5]
            ],
        }

        if relevant:
            summary = f"Found {len(relevant)} relevant social media posts"
            return ChannelResult(self.channel, ChannelStatus.VERIFIED, summary, snapshot)

        summary = "No relevant social media posts found"
        return ChannelResult(self.channel, ChannelStatus.NOT_MATCHED, summary, snapshot)
