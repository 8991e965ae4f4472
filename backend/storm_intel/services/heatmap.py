"""Heatmap query: fetch in-window events, score them, roll up by region."""

import logging
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from storm_intel.models.weather import WeatherEvent
from storm_intel.schemas.heatmap import DateRange, HeatmapResponse, HeatmapSummary
from storm_intel.services import intensity, region_aggregator, severity

logger = logging.getLogger(__name__)


def fetch_events(db: Session, start: datetime, min_severity: str) -> list[WeatherEvent]:
    allowed = [s.value for s in severity.at_least(min_severity)]
    return (
        db.query(WeatherEvent)
        .filter(WeatherEvent.event_date >= start)
        .filter(func.lower(func.trim(WeatherEvent.severity)).in_(allowed))
        .order_by(WeatherEvent.event_date.desc(), WeatherEvent.id)
        .all()
    )


def build_heatmap(
    events: list[WeatherEvent],
    months: int,
    now: datetime,
    top_n: int = region_aggregator.TOP_REGIONS,
) -> HeatmapResponse:
    """Pure part of the query; ``events`` are already window- and severity-filtered."""
    lookback = intensity.lookback_window(months)
    points = intensity.score_events(events, now, lookback)

    summary = HeatmapSummary(
        total_events=len(points),
        avg_intensity=region_aggregator.average_intensity(points),
        top_regions=region_aggregator.top_regions(points, top_n),
        date_range=DateRange(start=now - lookback, end=now),
    )
    return HeatmapResponse(points=points, summary=summary)


def get_heatmap(
    db: Session,
    months: int,
    min_severity: str,
    now: datetime | None = None,
    top_n: int = region_aggregator.TOP_REGIONS,
) -> HeatmapResponse:
    now = now or datetime.now(timezone.utc)
    start = now - intensity.lookback_window(months)
    events = fetch_events(db, start, min_severity)
    result = build_heatmap(events, months, now, top_n)
    logger.info(
        "Heatmap: %d events in window, %d plotted (months=%d, min_severity=%s)",
        len(events), result.summary.total_events, months, min_severity,
    )
    return result
