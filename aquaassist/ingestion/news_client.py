"""
Aqua Assist - News Signal
Searches recent news coverage (NewsAPI) for the reported incident.
"""

from typing import Any, Dict, List, Optional

import httpx

from aquaassist.core.exceptions import UpstreamUnavailable
from aquaassist.database.models import ChannelStatus
from aquaassist.ingestion.base import ChannelResult, SignalAdapter, SignalQuery, mentions_any

# Articles kept in the stored snapshot
MAX_SNAPSHOT_ARTICLES = 5


class NewsSignal(SignalAdapter):
    """
    News channel backed by NewsAPI.
    Documentation: https://newsapi.org/docs/endpoints/everything
    """

    channel = "news"

    BASE_URL = "https://newsapi.org/v2/everything"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        page_size: int = 10
    ):
        super().__init__(timeout=timeout, client=client)
        self.api_key = api_key
        self.base_url = base_url or self.BASE_URL
        self.page_size = page_size

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: SignalQuery) -> Dict[str, Any]:
        """
        Search articles about the report location within its time window.

        Returns:
            Raw NewsAPI payload
        """
        params = {
            "q": f"{query.search_terms} {query.location_query}",
            "from": query.window_start.isoformat(timespec="seconds"),
            "to": query.window_end.isoformat(timespec="seconds"),
            "language": "en",
            "sortBy": "relevancy",
            "pageSize": self.page_size,
            "apiKey": self.api_key,
        }

        async with self._http() as client:
            response = await client.get(self.base_url, params=params)
            response.raise_for_status()
            data = response.json()

        if data.get("status") == "error":
            raise UpstreamUnavailable(data.get("message", "NewsAPI returned an error"))

        return data

    async def _lookup(self, query: SignalQuery) -> ChannelResult:
        if not self.is_configured:
            return ChannelResult.unavailable(self.channel, "News API not configured")

        data = await self.search(query)
        articles: List[Dict[str, Any]] = data.get("articles") or []

        relevant = [
            article for article in articles
            if mentions_any(
                f"{article.get('title') or ''} {article.get('description') or ''}",
                query.keywords,
            )
        ]

        snapshot = {
            "source": "NewsAPI",
            "query": f"{query.search_terms} {query.location_query}",
            "total_results": data.get("totalResults", len(articles)),
            "matching_articles": len(relevant),
            "articles": [
                {
                    "title": article.get("title"),
                    "url": article.get("url"),
                    "source": (article.get("source") or {}).get("name"),
                    "published_at": article.get("publishedAt"),
                }
                for article in relevant[:MAX_SNAPSHOT_ARTICLES]
            ],
        }

        if relevant:
            summary = f"Found {len(relevant)} relevant news articles"
            return ChannelResult(self.channel, ChannelStatus.VERIFIED, summary, snapshot)

        if articles:
            summary = f"Found {len(articles)} articles but none relevant to the report"
        else:
            summary = "No recent news articles found"
        return ChannelResult(self.channel, ChannelStatus.NOT_MATCHED, summary, snapshot)
