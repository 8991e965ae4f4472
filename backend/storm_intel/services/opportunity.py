"""Storm opportunity valuation.

Recent events for one state are grouped by (county, category):
  hail  <- hail reports
  wind  <- wind, tornado and hurricane reports (only when max speed >= 50 mph)
Flood and general events carry no roofing opportunity.

Hail:  homes = reports * 500 * size multiplier (3x >= 2.0", 2x >= 1.5")
       value = homes * roof value ($12k >= 1.5", $10k >= 1.0", else $8k) * 30% close rate
Wind:  homes = reports * 300 * speed multiplier (2.5x >= 70 mph, 1.5x >= 60 mph)
       value = homes * $5k repair * 20% close rate

Missing magnitudes fall back to a severity-derived default so that output is
monotonic in both report count and severity.
"""

import logging
import re
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from storm_intel.models.crm import Customer
from storm_intel.models.weather import WeatherEvent
from storm_intel.schemas.opportunity import (
    DailyStormBrief,
    OpportunityDetails,
    OpportunityLocation,
    OpportunitySummary,
    StormOpportunity,
)
from storm_intel.services.intensity import as_utc
from storm_intel.services.severity import Severity, parse_severity

logger = logging.getLogger(__name__)

HAIL_EVENT_TYPES = {"hail"}
WIND_EVENT_TYPES = {"wind", "tornado", "hurricane"}
MIN_WIND_SPEED_MPH = 50.0

# Explicit defaults for reports without a measured magnitude
DEFAULT_HAIL_SIZE_IN: dict[Severity, float] = {
    Severity.MINOR: 0.75,
    Severity.MODERATE: 1.0,
    Severity.SEVERE: 1.75,
    Severity.CATASTROPHIC: 2.5,
}
DEFAULT_WIND_SPEED_MPH: dict[Severity, float] = {
    Severity.MINOR: 50.0,
    Severity.MODERATE: 58.0,
    Severity.SEVERE: 65.0,
    Severity.CATASTROPHIC: 80.0,
}


def effective_hail_size(event) -> float:
    if event.hail_size is not None:
        return event.hail_size
    return DEFAULT_HAIL_SIZE_IN[parse_severity(event.severity) or Severity.MINOR]


def effective_wind_speed(event) -> float:
    if event.wind_speed is not None:
        return event.wind_speed
    return DEFAULT_WIND_SPEED_MPH[parse_severity(event.severity) or Severity.MINOR]


def category_for(event_type: str | None) -> str | None:
    t = (event_type or "").lower()
    if t in HAIL_EVENT_TYPES:
        return "hail"
    if t in WIND_EVENT_TYPES:
        return "wind"
    return None


def compute(events: list, state: str) -> list[StormOpportunity]:
    """Value a state's recent events. Deterministic for a given event set."""
    groups: dict[tuple[str, str], list] = {}
    for e in events:
        category = category_for(e.event_type)
        if category is None:
            continue
        county = (e.county or e.city or "Unknown").strip() or "Unknown"
        groups.setdefault((county, category), []).append(e)

    opportunities: list[StormOpportunity] = []
    for (county, category), reports in groups.items():
        if category == "hail":
            opp = _hail_opportunity(county, state, reports)
        else:
            opp = _wind_opportunity(county, state, reports)
        if opp is not None:
            opportunities.append(opp)

    return sorted(
        opportunities,
        key=lambda o: (-o.priority, -o.estimated_opportunity_value, o.location.county, o.type),
    )


def _hail_opportunity(county: str, state: str, reports: list) -> StormOpportunity:
    max_size = max(effective_hail_size(r) for r in reports)
    homes = estimate_affected_homes_hail(len(reports), max_size)
    value = homes * _roof_value(max_size) * 0.3
    latest = _latest(reports)

    return StormOpportunity(
        id=_opportunity_id("hail", state, county),
        type="hail",
        severity="critical" if max_size >= 2.0 else "high" if max_size >= 1.0 else "moderate",
        location=_location(county, state, reports),
        event_date=as_utc(latest.event_date),
        details=OpportunityDetails(
            hail_size=max_size,
            description=(
                f"{len(reports)} hail report(s), max size {max_size}\" "
                f"({hail_description(max_size)})"
            ),
        ),
        estimated_affected_homes=homes,
        estimated_opportunity_value=value,
        recommended_action=hail_recommendation(max_size),
        priority=hail_priority(max_size, len(reports)),
    )


def _wind_opportunity(county: str, state: str, reports: list) -> StormOpportunity | None:
    max_speed = max(effective_wind_speed(r) for r in reports)
    if max_speed < MIN_WIND_SPEED_MPH:
        return None

    homes = estimate_affected_homes_wind(len(reports), max_speed)
    value = homes * 5000 * 0.2
    latest = _latest(reports)

    return StormOpportunity(
        id=_opportunity_id("wind", state, county),
        type="wind",
        severity="critical" if max_speed >= 70 else "high" if max_speed >= 60 else "moderate",
        location=_location(county, state, reports),
        event_date=as_utc(latest.event_date),
        details=OpportunityDetails(
            wind_speed=max_speed,
            description=f"{len(reports)} wind report(s), max {max_speed:g} mph",
        ),
        estimated_affected_homes=homes,
        estimated_opportunity_value=value,
        recommended_action=(
            f"Wind damage likely at {max_speed:g}mph. "
            "Check for shingle damage, soffit/fascia issues."
        ),
        priority=wind_priority(max_speed, len(reports)),
    )


def estimate_affected_homes_hail(report_count: int, hail_size: float) -> int:
    base_homes = report_count * 500
    multiplier = 3 if hail_size >= 2.0 else 2 if hail_size >= 1.5 else 1
    return round(base_homes * multiplier)


def estimate_affected_homes_wind(report_count: int, speed: float) -> int:
    base_homes = report_count * 300
    multiplier = 2.5 if speed >= 70 else 1.5 if speed >= 60 else 1
    return round(base_homes * multiplier)


def _roof_value(hail_size: float) -> int:
    if hail_size >= 1.5:
        return 12000
    if hail_size >= 1.0:
        return 10000
    return 8000


def hail_priority(hail_size: float, report_count: int) -> int:
    priority = 0
    if hail_size >= 2.0:
        priority += 6
    elif hail_size >= 1.5:
        priority += 4
    elif hail_size >= 1.0:
        priority += 2

    if report_count >= 10:
        priority += 4
    elif report_count >= 5:
        priority += 3
    elif report_count >= 3:
        priority += 2
    else:
        priority += 1
    return min(priority, 10)


def wind_priority(speed: float, report_count: int) -> int:
    priority = 5 if speed >= 70 else 3 if speed >= 60 else 1
    if report_count >= 5:
        priority += 3
    elif report_count >= 3:
        priority += 2
    else:
        priority += 1
    return min(priority, 10)


def hail_description(size: float) -> str:
    if size >= 4.0:
        return "Softball+, catastrophic damage likely"
    if size >= 2.75:
        return "Baseball, severe roof damage"
    if size >= 2.0:
        return "Hen egg, significant damage likely"
    if size >= 1.75:
        return "Golf ball, roof damage expected"
    if size >= 1.5:
        return "Ping pong ball, damage possible"
    if size >= 1.0:
        return "Quarter, minor damage possible"
    return "Small hail, minimal damage"


def hail_recommendation(size: float) -> str:
    if size >= 2.0:
        return "PRIORITY: Large hail confirmed. Deploy canvassing teams immediately. High close rate expected."
    if size >= 1.5:
        return "Strong opportunity. Start outreach to existing customers in area, then door-to-door."
    if size >= 1.0:
        return "Moderate opportunity. Check on existing customers, offer free inspections."
    return "Monitor area. May be good for follow-up marketing campaign."


def summarize(opportunities: list[StormOpportunity]) -> OpportunitySummary:
    total_value = sum(o.estimated_opportunity_value for o in opportunities)
    return OpportunitySummary(
        total_opportunities=len(opportunities),
        critical_opportunities=sum(1 for o in opportunities if o.severity == "critical"),
        estimated_affected_homes=sum(o.estimated_affected_homes for o in opportunities),
        estimated_total_value=total_value,
        estimated_total_value_formatted=format_thousands(total_value),
    )


def format_thousands(value: float) -> str:
    return f"${value / 1000:.0f}K"


def _latest(reports: list):
    return max(reports, key=lambda r: as_utc(r.event_date))


def _location(county: str, state: str, reports: list) -> OpportunityLocation:
    located = [r for r in reports if r.latitude is not None and r.longitude is not None]
    anchor = _latest(located) if located else None
    return OpportunityLocation(
        county=county,
        state=state,
        latitude=anchor.latitude if anchor else None,
        longitude=anchor.longitude if anchor else None,
    )


def _opportunity_id(category: str, state: str, county: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", county.lower()).strip("-") or "unknown"
    return f"opp-{category}-{state.lower()}-{slug}"


# --- Store-backed queries ---

def fetch_state_events(db: Session, state: str, since: datetime) -> list[WeatherEvent]:
    return (
        db.query(WeatherEvent)
        .filter(WeatherEvent.state == state)
        .filter(WeatherEvent.event_date >= since)
        .order_by(WeatherEvent.event_date.desc(), WeatherEvent.id)
        .all()
    )


def attach_customers(db: Session, state: str, opportunities: list[StormOpportunity]):
    counties = {o.location.county for o in opportunities}
    if not counties:
        return
    rows = (
        db.query(Customer.id, Customer.county)
        .filter(Customer.state == state)
        .filter(Customer.county.in_(counties))
        .order_by(Customer.lead_score.desc(), Customer.id)
        .all()
    )
    by_county: dict[str, list[str]] = {}
    for customer_id, county in rows:
        by_county.setdefault(county, []).append(customer_id)
    for o in opportunities:
        o.affected_customer_ids = by_county.get(o.location.county, [])


def get_storm_opportunities(
    db: Session,
    state: str,
    lookback_days: int,
    now: datetime | None = None,
) -> list[StormOpportunity]:
    now = now or datetime.now(timezone.utc)
    state = state.upper()
    events = fetch_state_events(db, state, now - timedelta(days=lookback_days))
    opportunities = compute(events, state)
    attach_customers(db, state, opportunities)
    logger.info(
        "Opportunities for %s: %d events -> %d opportunities",
        state, len(events), len(opportunities),
    )
    return opportunities


def build_daily_brief(
    db: Session,
    state: str,
    lookback_days: int,
    now: datetime | None = None,
) -> DailyStormBrief:
    now = now or datetime.now(timezone.utc)
    state = state.upper()
    events = fetch_state_events(db, state, now - timedelta(days=lookback_days))
    opportunities = compute(events, state)
    attach_customers(db, state, opportunities)

    counties = sorted({(e.county or e.city).strip() for e in events if (e.county or e.city)})

    return DailyStormBrief(
        date=now,
        state=state,
        summary=_brief_summary(events),
        total_opportunities=len(opportunities),
        estimated_total_value=sum(o.estimated_opportunity_value for o in opportunities),
        top_opportunities=opportunities[:5],
        affected_counties=counties,
        canvassing_recommendations=canvassing_recommendations(events),
    )


def _brief_summary(events: list) -> str:
    hail = sum(1 for e in events if category_for(e.event_type) == "hail")
    wind = sum(1 for e in events if (e.event_type or "").lower() == "wind")
    severe = sum(
        1 for e in events
        if parse_severity(e.severity) in (Severity.SEVERE, Severity.CATASTROPHIC)
    )
    if severe:
        return (
            f"SEVERE WEATHER ACTIVE: {severe} severe report(s). "
            f"{hail} hail reports, {wind} wind reports."
        )
    if hail or wind:
        return f"Storm activity detected: {hail} hail reports, {wind} wind reports."
    if events:
        return f"{len(events)} weather report(s) on record. Monitor conditions for developing opportunities."
    return "No significant storm activity. Good day for follow-ups and scheduled inspections."


def canvassing_recommendations(events: list) -> list[str]:
    recs: list[str] = []

    def counties(matching) -> str:
        names = sorted({(e.county or e.city or "Unknown").strip() for e in matching})
        return ", ".join(names)

    large_hail = [
        e for e in events
        if category_for(e.event_type) == "hail" and effective_hail_size(e) >= 1.5
    ]
    if large_hail:
        recs.append(
            f"HIGH PRIORITY: Canvas {counties(large_hail)} - "
            f"{len(large_hail)} large hail report(s) (1.5\"+)"
        )

    tornadoes = [e for e in events if (e.event_type or "").lower() == "tornado"]
    if tornadoes:
        recs.append(f"TORNADO DAMAGE: {counties(tornadoes)} - Insurance fast-track opportunities")

    high_wind = [
        e for e in events
        if category_for(e.event_type) == "wind" and effective_wind_speed(e) >= 60
    ]
    if high_wind:
        recs.append(f"WIND DAMAGE: {counties(high_wind)} - Check for shingle/fascia damage")

    if not recs:
        recs.append("No storm activity - focus on existing leads and scheduled appointments")
    return recs
