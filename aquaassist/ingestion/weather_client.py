"""
Aqua Assist - Weather Signal
Fetches rainfall history from Open-Meteo API (free, no authentication required)
and checks whether it supports a flood report.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

import httpx

from aquaassist.core.constants import (
    HEAVY_HOURLY_RAIN_MM,
    HEAVY_DAILY_RAIN_MM,
    SATURATED_HUMIDITY_PERCENT,
    MODERATE_HOURLY_RAIN_MM,
    MODERATE_DAILY_RAIN_MM,
)
from aquaassist.core.exceptions import UpstreamUnavailable
from aquaassist.database.models import ChannelStatus, ReportKind
from aquaassist.ingestion.base import ChannelResult, SignalAdapter, SignalQuery


@dataclass
class RainfallSummary:
    """Rainfall observed at a location over the report window."""
    latitude: float
    longitude: float
    start: datetime
    end: datetime
    max_hourly_precipitation_mm: float = 0.0
    max_daily_precipitation_mm: float = 0.0
    total_precipitation_mm: float = 0.0
    max_humidity_percent: float = 0.0
    hours_observed: int = 0

    @property
    def is_heavy(self) -> bool:
        """Rain or saturation consistent with flooding."""
        return (
            self.max_hourly_precipitation_mm > HEAVY_HOURLY_RAIN_MM
            or self.max_daily_precipitation_mm > HEAVY_DAILY_RAIN_MM
            or self.max_humidity_percent > SATURATED_HUMIDITY_PERCENT
        )

    @property
    def is_moderate(self) -> bool:
        return (
            self.max_hourly_precipitation_mm > MODERATE_HOURLY_RAIN_MM
            or self.max_daily_precipitation_mm > MODERATE_DAILY_RAIN_MM
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "max_hourly_precipitation_mm": self.max_hourly_precipitation_mm,
            "max_daily_precipitation_mm": self.max_daily_precipitation_mm,
            "total_precipitation_mm": self.total_precipitation_mm,
            "max_humidity_percent": self.max_humidity_percent,
            "hours_observed": self.hours_observed,
        }


class WeatherSignal(SignalAdapter):
    """
    Weather channel backed by Open-Meteo.
    Documentation: https://open-meteo.com/en/docs
    """

    channel = "weather"

    BASE_URL = "https://api.open-meteo.com/v1/forecast"

    def __init__(
        self,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None
    ):
        super().__init__(timeout=timeout, client=client)
        self.base_url = base_url or self.BASE_URL

    async def get_rainfall(
        self,
        latitude: float,
        longitude: float,
        start: datetime,
        end: datetime
    ) -> RainfallSummary:
        """
        Get rainfall observed between two instants.

        Args:
            latitude: Location latitude (-90 to 90)
            longitude: Location longitude (-180 to 180)
            start: Window start (UTC)
            end: Window end (UTC)

        Returns:
            RainfallSummary for the window
        """
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "hourly": "precipitation,relative_humidity_2m",
            "daily": "precipitation_sum",
            "start_date": start.date().isoformat(),
            "end_date": end.date().isoformat(),
            "timezone": "UTC",
        }

        async with self._http() as client:
            response = await client.get(self.base_url, params=params)
            response.raise_for_status()
            data = response.json()

        if data.get("error"):
            raise UpstreamUnavailable(data.get("reason", "Open-Meteo returned an error"))

        hourly = data.get("hourly", {})
        times = hourly.get("time", [])
        precipitation = hourly.get("precipitation", [])
        humidity = hourly.get("relative_humidity_2m", [])

        window_precipitation = []
        window_humidity = []
        hourly_by_day: Dict[date, float] = defaultdict(float)
        for i, time_str in enumerate(times):
            stamp = datetime.fromisoformat(time_str)
            if stamp < start or stamp > end:
                continue
            if i < len(precipitation) and precipitation[i] is not None:
                window_precipitation.append(float(precipitation[i]))
                hourly_by_day[stamp.date()] += float(precipitation[i])
            if i < len(humidity) and humidity[i] is not None:
                window_humidity.append(float(humidity[i]))

        daily_sums = self._window_daily_sums(data.get("daily", {}), hourly_by_day, start, end)

        return RainfallSummary(
            latitude=data.get("latitude", latitude),
            longitude=data.get("longitude", longitude),
            start=start,
            end=end,
            max_hourly_precipitation_mm=max(window_precipitation, default=0.0),
            max_daily_precipitation_mm=max(daily_sums, default=0.0),
            total_precipitation_mm=round(sum(window_precipitation), 2),
            max_humidity_percent=max(window_humidity, default=0.0),
            hours_observed=len(window_precipitation),
        )

    @staticmethod
    def _window_daily_sums(
        daily: Dict[str, Any],
        hourly_by_day: Dict[date, float],
        start: datetime,
        end: datetime
    ) -> List[float]:
        """
        Daily rainfall totals restricted to the window.

        Days lying wholly inside the window use the upstream daily sum.
        Days cut by the window edges only count their in-window hours.
        """
        sums = []
        for day_str, total in zip(daily.get("time", []), daily.get("precipitation_sum", [])):
            day = date.fromisoformat(day_str)
            day_start = datetime.combine(day, time())
            if total is None or day_start < start or day_start + timedelta(days=1) > end:
                continue
            sums.append(float(total))

        for day, total in hourly_by_day.items():
            day_start = datetime.combine(day, time())
            if day_start < start or day_start + timedelta(days=1) > end:
                sums.append(round(total, 2))
        return sums

    async def _lookup(self, query: SignalQuery) -> ChannelResult:
        if query.kind != ReportKind.FLOOD:
            return ChannelResult.unavailable(
                self.channel, "Weather has no coverage for water-supply issues"
            )

        rainfall = await self.get_rainfall(
            query.latitude, query.longitude, query.window_start, query.window_end
        )

        if rainfall.hours_observed == 0:
            return ChannelResult.unavailable(self.channel, "No weather observations for the report window")

        snapshot = {"source": "Open-Meteo", **rainfall.to_dict()}
        figures = (
            f"{rainfall.max_hourly_precipitation_mm}mm peak hourly rainfall, "
            f"{rainfall.max_daily_precipitation_mm}mm peak daily, "
            f"{rainfall.max_humidity_percent}% humidity"
        )

        if rainfall.is_heavy:
            snapshot["intensity"] = "heavy"
            return ChannelResult(
                self.channel, ChannelStatus.VERIFIED,
                f"Weather conditions support flood report: {figures}", snapshot,
            )
        if rainfall.is_moderate:
            snapshot["intensity"] = "moderate"
            return ChannelResult(
                self.channel, ChannelStatus.VERIFIED,
                f"Weather shows moderate rainfall: {figures}", snapshot,
            )

        snapshot["intensity"] = "none"
        return ChannelResult(
            self.channel, ChannelStatus.NOT_MATCHED,
            f"Weather conditions don't indicate flooding: {figures}", snapshot,
        )
