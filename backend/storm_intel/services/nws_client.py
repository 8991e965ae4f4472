import logging
import re
from datetime import datetime

import httpx

from storm_intel.config import settings
from storm_intel.schemas.forecast import ForecastPeriod
from storm_intel.territory.definitions import MonitoringLocation

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": settings.nws_user_agent,
    "Accept": "application/geo+json",
}


async def fetch_forecast(location: MonitoringLocation) -> list[ForecastPeriod] | None:
    """Fetch the 7-day (12-hour period) forecast for a monitoring location.

    Returns None when NWS is unreachable or answers with an error so the
    caller can tell "no storms" apart from "no data".
    """
    url = f"{settings.nws_base_url}/points/{location.latitude:.4f},{location.longitude:.4f}"
    try:
        async with httpx.AsyncClient(headers=HEADERS, timeout=15) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            forecast_url = resp.json()["properties"].get("forecast")
            if not forecast_url:
                return None

            fc_resp = await client.get(forecast_url)
            fc_resp.raise_for_status()
            periods = fc_resp.json()["properties"]["periods"]

            return [_parse_period(p) for p in periods]
    except Exception as e:
        logger.warning("NWS forecast fetch failed for %s: %s", location.name, e)
        return None


def _parse_period(p: dict) -> ForecastPeriod:
    return ForecastPeriod(
        name=p.get("name", ""),
        start_time=datetime.fromisoformat(p["startTime"]),
        end_time=datetime.fromisoformat(p["endTime"]),
        temperature=p.get("temperature"),
        wind_speed_mph=_parse_wind_speed(p.get("windSpeed", "")),
        short_forecast=p.get("shortForecast") or "",
        detailed_forecast=p.get("detailedForecast") or "",
    )


def _parse_wind_speed(wind_str: str) -> float | None:
    """Parse NWS wind speed string like '15 mph' or '10 to 20 mph'."""
    if not wind_str:
        return None
    numbers = re.findall(r"(\d+)", wind_str)
    if not numbers:
        return None
    return max(float(n) for n in numbers)
