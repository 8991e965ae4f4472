"""Heatmap intensity scoring.

intensity = min((severity_weight + customer_boost + damage_boost) * recency, 1)

  customer_boost = min(affected_customers / 50, 1) * 0.3
  damage_boost   = min(estimated_damage / 500_000, 1) * 0.2
  recency        = 1 - (age / lookback) * 0.5     (1.0 fresh, 0.5 at window edge)

Boosts are additive so a catastrophic event with no recorded damage still
scores near 1.0 from severity alone.
"""

import math
from datetime import datetime, timedelta, timezone

from storm_intel.schemas.heatmap import EventMetadata, HeatmapPoint
from storm_intel.services import severity

CUSTOMER_SATURATION = 50
CUSTOMER_BOOST = 0.3
DAMAGE_SATURATION = 500_000.0
DAMAGE_BOOST = 0.2
DECAY_AT_WINDOW_EDGE = 0.5
DAYS_PER_MONTH = 30


def lookback_window(months: int) -> timedelta:
    return timedelta(days=months * DAYS_PER_MONTH)


def round2(value: float) -> float:
    """Half-up rounding to cents, independent of float banker's rounding."""
    return math.floor(value * 100 + 0.5) / 100


def as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def recency_factor(event_date: datetime, now: datetime, lookback: timedelta) -> float:
    if lookback.total_seconds() <= 0:
        return 1.0
    age = (as_utc(now) - as_utc(event_date)).total_seconds()
    # Future-dated reports count as fresh; stale ones bottom out at the window edge
    age = max(0.0, min(age, lookback.total_seconds()))
    return 1 - (age / lookback.total_seconds()) * DECAY_AT_WINDOW_EDGE


def customer_boost(affected_customers: int | None) -> float:
    count = affected_customers if affected_customers is not None else 0
    return min(max(count, 0) / CUSTOMER_SATURATION, 1) * CUSTOMER_BOOST


def damage_boost(estimated_damage: float | None) -> float:
    if estimated_damage is None:
        return 0.0
    return min(max(estimated_damage, 0.0) / DAMAGE_SATURATION, 1) * DAMAGE_BOOST


def compute(
    severity_label: str,
    affected_customers: int | None,
    estimated_damage: float | None,
    event_date: datetime,
    now: datetime,
    lookback: timedelta,
) -> float:
    """Intensity in [0, 1], rounded to two decimals."""
    base = (
        severity.weight(severity_label)
        + customer_boost(affected_customers)
        + damage_boost(estimated_damage)
    )
    raw = base * recency_factor(event_date, now, lookback)
    return round2(max(0.0, min(raw, 1.0)))


def score_event(event, now: datetime, lookback: timedelta) -> HeatmapPoint | None:
    """Project a WeatherEvent onto the heatmap; None when it has no coordinates."""
    if event.latitude is None or event.longitude is None:
        return None

    intensity = compute(
        event.severity,
        event.affected_customers,
        event.estimated_damage,
        event.event_date,
        now,
        lookback,
    )

    return HeatmapPoint(
        lat=event.latitude,
        lng=event.longitude,
        intensity=intensity,
        metadata=EventMetadata(
            id=event.id,
            type=event.event_type,
            date=as_utc(event.event_date),
            severity=event.severity,
            location=location_label(event.city, event.county, event.state),
            hail_size=event.hail_size,
            wind_speed=event.wind_speed,
            affected_customers=event.affected_customers if event.affected_customers is not None else 0,
            estimated_damage=event.estimated_damage,
        ),
    )


def score_events(events, now: datetime, lookback: timedelta) -> list[HeatmapPoint]:
    points = []
    for event in events:
        point = score_event(event, now, lookback)
        if point is not None:
            points.append(point)
    return points


def location_label(city: str | None, county: str | None, state: str | None) -> str:
    parts = [p.strip() for p in (city, county, state) if p and p.strip()]
    return ", ".join(parts) if parts else "Unknown"
