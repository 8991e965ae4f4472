"""Storm Prediction Center categorical outlooks (days 1-3, GeoJSON)."""

import logging
from datetime import datetime, time, timedelta, timezone

import httpx

from storm_intel.config import settings
from storm_intel.schemas.forecast import SPCOutlook
from storm_intel.services.severity import PredictionSeverity
from storm_intel.territory.definitions import MONITORING_LOCATIONS, SERVICE_STATES

logger = logging.getLogger(__name__)

# Outlooks are valid for the convective day; anchor them at ~noon Eastern
OUTLOOK_VALID_HOUR_UTC = 16


async def fetch_day_outlook(day: int, now: datetime | None = None) -> SPCOutlook | None:
    """Highest-risk polygon of the day N categorical outlook, or None.

    Raises httpx errors so the caller can distinguish an empty outlook
    from an unreachable SPC.
    """
    url = f"{settings.spc_base_url}/products/outlook/day{day}otlk_cat.lyr.geojson"
    async with httpx.AsyncClient(headers={"User-Agent": settings.nws_user_agent}, timeout=15) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        data = resp.json()

    return parse_outlook(data, day, now or datetime.now(timezone.utc))


def parse_outlook(data: dict, day: int, now: datetime) -> SPCOutlook | None:
    features = data.get("features") or []
    best_risk, best_feature = 0, None
    for f in features:
        props = f.get("properties") or {}
        risk = parse_risk(props.get("LABEL", props.get("DN")))
        if risk > best_risk:
            best_risk, best_feature = risk, f

    if best_feature is None:
        return None

    valid_date = now.date() + timedelta(days=day - 1)
    valid_time = datetime.combine(valid_date, time(OUTLOOK_VALID_HOUR_UTC), tzinfo=timezone.utc)

    states = states_in_geometry(best_feature.get("geometry") or {})
    return SPCOutlook(
        day=day,
        category=risk_to_category(best_risk),
        valid_time=valid_time,
        affected_states=[s for s in states if s in SERVICE_STATES],
        risk=best_risk,
    )


def parse_risk(label) -> int:
    if label is None:
        return 0
    if isinstance(label, (int, float)):
        return int(label)
    text = str(label).lower()
    if "high" in text:
        return 5
    if "mod" in text:
        return 4
    if "enh" in text:
        return 3
    if "slgt" in text or "slight" in text:
        return 2
    if "mrgl" in text or "marginal" in text:
        return 1
    return 0


def risk_to_category(risk: int) -> PredictionSeverity:
    if risk >= 5:
        return PredictionSeverity.HIGH
    if risk >= 4:
        return PredictionSeverity.MODERATE
    if risk >= 3:
        return PredictionSeverity.ENHANCED
    if risk >= 2:
        return PredictionSeverity.SLIGHT
    return PredictionSeverity.MARGINAL


def states_in_geometry(geometry: dict) -> list[str]:
    """Service states whose monitoring location falls inside the outlook polygon."""
    gtype = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if gtype == "Polygon":
        rings = [coords[0]] if coords else []
    elif gtype == "MultiPolygon":
        rings = [poly[0] for poly in coords if poly]
    else:
        return []

    states: list[str] = []
    for loc in MONITORING_LOCATIONS:
        if loc.state in states:
            continue
        if any(point_in_polygon(loc.latitude, loc.longitude, ring) for ring in rings):
            states.append(loc.state)
    return states


def point_in_polygon(lat: float, lon: float, ring: list[list[float]]) -> bool:
    """Ray casting over a GeoJSON ring of [lon, lat] pairs."""
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > lat) != (yj > lat) and lon < (xj - xi) * (lat - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside
