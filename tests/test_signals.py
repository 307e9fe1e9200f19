"""
Tests for the weather, news and social signal adapters
"""
import asyncio
from datetime import datetime, timedelta

import httpx
import pytest

from aquaassist.database.models import ChannelStatus, ReportKind
from aquaassist.ingestion import build_adapters
from aquaassist.ingestion.base import SignalQuery, mentions_any
from aquaassist.ingestion.news_client import NewsSignal
from aquaassist.ingestion.social_client import SocialSignal
from aquaassist.ingestion.weather_client import WeatherSignal

CREATED_AT = datetime(2026, 7, 10, 12, 0)


def make_query(kind=ReportKind.FLOOD):
    return SignalQuery(
        report_id="r1",
        kind=kind,
        district="Kamrup",
        state="Assam",
        latitude=26.14,
        longitude=91.73,
        window_start=CREATED_AT - timedelta(hours=72),
        window_end=CREATED_AT + timedelta(hours=24),
    )


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def weather_payload(hourly_rain, humidity=60.0, daily=None):
    start = CREATED_AT - timedelta(hours=len(hourly_rain) - 1)
    return {
        "latitude": 26.14,
        "longitude": 91.73,
        "hourly": {
            "time": [(start + timedelta(hours=i)).strftime("%Y-%m-%dT%H:%M") for i in range(len(hourly_rain))],
            "precipitation": hourly_rain,
            "relative_humidity_2m": [humidity] * len(hourly_rain),
        },
        "daily": {"time": ["2026-07-10"], "precipitation_sum": daily or [sum(r or 0 for r in hourly_rain)]},
    }


class TestSignalQuery:
    """Test suite for the report window."""

    def test_window_bounded_by_now(self):
        class FakeReport:
            id = "r1"
            kind = ReportKind.FLOOD
            district = "Kamrup"
            state = "Assam"
            latitude = 26.14
            longitude = 91.73
            created_at = CREATED_AT

        now = CREATED_AT + timedelta(hours=2)
        query = SignalQuery.from_report(FakeReport(), lookback_hours=72, lookahead_hours=24, now=now)

        assert query.window_start == CREATED_AT - timedelta(hours=72)
        assert query.window_end == now
        assert query.location_query == "Kamrup Assam"

    def test_keywords_per_kind(self):
        assert mentions_any("Severe FLOODING reported", make_query().keywords)
        assert mentions_any("Pipeline burst on NH-37", make_query(ReportKind.WATER_ISSUE).keywords)
        assert not mentions_any(None, make_query().keywords)


class TestWeatherSignal:
    """Test suite for the Open-Meteo weather channel."""

    @pytest.mark.asyncio
    async def test_heavy_rain_verifies_flood(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=weather_payload([2.0, 18.5, 7.0]))

        async with client_for(handler) as client:
            result = await WeatherSignal(client=client).lookup(make_query())

        assert result.status == ChannelStatus.VERIFIED
        assert result.snapshot["intensity"] == "heavy"
        assert result.snapshot["max_hourly_precipitation_mm"] == 18.5
        assert requests[0].url.params["start_date"] == "2026-07-07"
        assert "precipitation" in requests[0].url.params["hourly"]

    @pytest.mark.asyncio
    async def test_moderate_rain_verifies_flood(self):
        def handler(request):
            return httpx.Response(200, json=weather_payload([1.0, 6.0, 1.0], daily=[8.0]))

        async with client_for(handler) as client:
            result = await WeatherSignal(client=client).lookup(make_query())

        assert result.status == ChannelStatus.VERIFIED
        assert result.snapshot["intensity"] == "moderate"

    @pytest.mark.asyncio
    async def test_daily_sums_outside_window_ignored(self):
        # 2026-07-07 starts 12 hours before the window opens
        payload = weather_payload([0.5, 0.5, 0.5])
        payload["daily"] = {"time": ["2026-07-07", "2026-07-10"], "precipitation_sum": [80.0, 1.0]}

        def handler(request):
            return httpx.Response(200, json=payload)

        async with client_for(handler) as client:
            result = await WeatherSignal(client=client).lookup(make_query())

        assert result.status == ChannelStatus.NOT_MATCHED
        assert result.snapshot["max_daily_precipitation_mm"] == 1.0

    @pytest.mark.asyncio
    async def test_dry_weather_not_matched(self):
        def handler(request):
            return httpx.Response(200, json=weather_payload([0.0, 0.2, None]))

        async with client_for(handler) as client:
            result = await WeatherSignal(client=client).lookup(make_query())

        assert result.status == ChannelStatus.NOT_MATCHED
        assert "don't indicate" in result.summary

    @pytest.mark.asyncio
    async def test_water_issue_not_available_without_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with client_for(handler) as client:
            result = await WeatherSignal(client=client).lookup(make_query(ReportKind.WATER_ISSUE))

        assert result.status == ChannelStatus.NOT_AVAILABLE

    @pytest.mark.asyncio
    async def test_server_error_degrades(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        async with client_for(handler) as client:
            result = await WeatherSignal(client=client).lookup(make_query())

        assert result.status == ChannelStatus.NOT_AVAILABLE
        assert "unavailable" in result.summary

    @pytest.mark.asyncio
    async def test_malformed_payload_degrades(self):
        def handler(request):
            return httpx.Response(200, text="not json")

        async with client_for(handler) as client:
            result = await WeatherSignal(client=client).lookup(make_query())

        assert result.status == ChannelStatus.NOT_AVAILABLE

    @pytest.mark.asyncio
    async def test_timeout_degrades(self):
        async def handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json=weather_payload([20.0]))

        async with client_for(handler) as client:
            result = await WeatherSignal(timeout=0.05, client=client).lookup(make_query())

        assert result.status == ChannelStatus.NOT_AVAILABLE
        assert "timed out" in result.summary


class TestNewsSignal:
    """Test suite for the NewsAPI channel."""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        result = await NewsSignal(api_key=None).lookup(make_query())

        assert result.status == ChannelStatus.NOT_AVAILABLE

    @pytest.mark.asyncio
    async def test_relevant_articles_verify(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={
                "status": "ok",
                "totalResults": 2,
                "articles": [
                    {"title": "Cricket final tonight", "description": "Sports", "url": "https://a"},
                    {
                        "title": "Flooding in Kamrup after heavy rain",
                        "description": "Evacuation under way",
                        "url": "https://b",
                        "source": {"name": "Assam Tribune"},
                    },
                ],
            })

        async with client_for(handler) as client:
            result = await NewsSignal(api_key="key", client=client).lookup(make_query())

        assert result.status == ChannelStatus.VERIFIED
        assert result.snapshot["matching_articles"] == 1
        assert result.snapshot["articles"][0]["source"] == "Assam Tribune"
        assert requests[0].url.params["q"] == "flood water level Kamrup Assam"
        assert requests[0].url.params["apiKey"] == "key"

    @pytest.mark.asyncio
    async def test_irrelevant_articles_not_matched(self):
        def handler(request):
            return httpx.Response(200, json={
                "status": "ok",
                "totalResults": 1,
                "articles": [{"title": "Election results", "description": None}],
            })

        async with client_for(handler) as client:
            result = await NewsSignal(api_key="key", client=client).lookup(make_query())

        assert result.status == ChannelStatus.NOT_MATCHED
        assert "none relevant" in result.summary

    @pytest.mark.asyncio
    async def test_api_error_degrades(self):
        def handler(request):
            return httpx.Response(200, json={"status": "error", "message": "apiKeyInvalid"})

        async with client_for(handler) as client:
            result = await NewsSignal(api_key="bad", client=client).lookup(make_query())

        assert result.status == ChannelStatus.NOT_AVAILABLE
        assert "apiKeyInvalid" in result.summary


class TestSocialSignal:
    """Test suite for the social media channel."""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        result = await SocialSignal(api_url="https://social.example/search").lookup(make_query())

        assert result.status == ChannelStatus.NOT_AVAILABLE

    @pytest.mark.asyncio
    async def test_matching_posts_verify(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"data": [
                {"id": "1", "caption": "Water supply cut again in our lane", "permalink": "https://p/1"},
                {"id": "2", "text": "Lovely sunset"},
            ]})

        async with client_for(handler) as client:
            signal = SocialSignal(
                api_url="https://social.example/search",
                access_token="token",
                client=client,
            )
            result = await signal.lookup(make_query(ReportKind.WATER_ISSUE))

        assert result.status == ChannelStatus.VERIFIED
        assert result.snapshot["matching_posts"] == 1
        assert requests[0].headers["Authorization"] == "Bearer token"

    @pytest.mark.asyncio
    async def test_missing_data_field_degrades(self):
        def handler(request):
            return httpx.Response(200, json={"error": "rate limited"})

        async with client_for(handler) as client:
            signal = SocialSignal(api_url="https://social.example/search", access_token="t", client=client)
            result = await signal.lookup(make_query())

        assert result.status == ChannelStatus.NOT_AVAILABLE


def test_build_adapters_covers_every_channel(config):
    adapters = build_adapters(config)

    assert [a.channel for a in adapters] == ["weather", "news", "social"]
    assert all(a.timeout == config.signal_timeout_seconds for a in adapters)
