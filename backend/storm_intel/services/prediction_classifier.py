"""Forecast-text storm detection and prediction tiering.

Keyword scan of NWS forecast periods:
  tornado             -> high
  severe + hail       -> moderate
  severe              -> enhanced
  thunderstorm        -> slight
  any other storm cue -> marginal

An SPC outlook for the same state within 24h raises the tier to the
outlook category when that is higher.
"""

from datetime import datetime, timedelta

from storm_intel.schemas.forecast import ForecastPeriod, SPCOutlook, StormPotentialPeriod
from storm_intel.schemas.prediction import AffectedArea, StormPrediction, ThreatDetails
from storm_intel.services.severity import PredictionSeverity, prediction_rank
from storm_intel.territory.definitions import (
    REGIONAL_CENTER,
    REGIONAL_RADIUS_MILES,
    MonitoringLocation,
)

DAMAGE_RATES: dict[PredictionSeverity, float] = {
    PredictionSeverity.MARGINAL: 0.05,
    PredictionSeverity.SLIGHT: 0.10,
    PredictionSeverity.ENHANCED: 0.20,
    PredictionSeverity.MODERATE: 0.35,
    PredictionSeverity.HIGH: 0.50,
}

OUTLOOK_MATCH_WINDOW = timedelta(hours=24)


def classify_icon(severity: PredictionSeverity | str) -> str:
    """Presentation icon for a notification title. Not used for routing."""
    severity = PredictionSeverity(severity)
    if severity in (PredictionSeverity.HIGH, PredictionSeverity.MODERATE):
        return "⚠️"
    if severity is PredictionSeverity.ENHANCED:
        return "🌩️"
    return "🌧️"


def analyze_periods(
    periods: list[ForecastPeriod], location: MonitoringLocation,
) -> list[StormPotentialPeriod]:
    results = []
    for period in periods:
        detailed = period.detailed_forecast.lower()
        short = period.short_forecast.lower()

        has_thunderstorm = "thunderstorm" in detailed or "thunderstorm" in short
        has_storm = "storm" in detailed or "storm" in short
        has_hail = "hail" in detailed
        has_tornado = "tornado" in detailed
        has_wind = "damaging wind" in detailed or "high wind" in detailed
        has_severe = "severe" in detailed

        if not (has_thunderstorm or has_storm or has_hail or has_tornado or has_severe):
            continue

        wind_speed = period.wind_speed_mph or 0.0

        hail_probability = 60 if has_hail else 30 if has_severe else 10
        wind_probability = 70 if has_wind else 50 if wind_speed >= 25 else 20
        tornado_probability = 40 if has_tornado else 10 if has_severe else 2

        if has_hail and has_wind:
            storm_type = "mixed"
        elif has_hail:
            storm_type = "hail"
        elif has_tornado:
            storm_type = "tornado"
        elif has_wind:
            storm_type = "wind"
        else:
            storm_type = "thunderstorm"

        if has_tornado:
            severity = PredictionSeverity.HIGH
        elif has_severe and has_hail:
            severity = PredictionSeverity.MODERATE
        elif has_severe:
            severity = PredictionSeverity.ENHANCED
        elif has_thunderstorm:
            severity = PredictionSeverity.SLIGHT
        else:
            severity = PredictionSeverity.MARGINAL

        results.append(StormPotentialPeriod(
            period=period,
            location_name=location.name,
            state=location.state,
            latitude=location.latitude,
            longitude=location.longitude,
            type=storm_type,
            severity=severity,
            hail_probability=hail_probability,
            wind_probability=wind_probability,
            tornado_probability=tornado_probability,
        ))
    return results


def matching_outlook(
    potential: StormPotentialPeriod, outlooks: list[SPCOutlook],
) -> SPCOutlook | None:
    for o in outlooks:
        if potential.state not in o.affected_states:
            continue
        if abs(o.valid_time - potential.period.start_time) < OUTLOOK_MATCH_WINDOW:
            return o
    return None


def build_prediction(
    potential: StormPotentialPeriod,
    outlooks: list[SPCOutlook],
    now: datetime,
    radius_miles: float,
    customer_count: int = 0,
    zip_codes: list[str] | None = None,
    avg_job_value: float = 15000.0,
) -> StormPrediction:
    start = potential.period.start_time
    hours_until = (start - now).total_seconds() / 3600

    outlook = matching_outlook(potential, outlooks)
    severity = potential.severity
    if outlook is not None and prediction_rank(outlook.category) > prediction_rank(severity):
        severity = outlook.category

    estimated_damage = customer_count * avg_job_value * DAMAGE_RATES[severity]

    return StormPrediction(
        id=prediction_id(potential.latitude, potential.longitude, radius_miles, start),
        type=potential.type,
        severity=severity,
        probability=min(100, potential.hail_probability + potential.wind_probability),
        expected_start=start,
        expected_end=potential.period.end_time,
        hours_until=round(hours_until),
        latitude=potential.latitude,
        longitude=potential.longitude,
        affected_area=AffectedArea(
            states=[potential.state],
            zip_codes=zip_codes or [],
            radius_miles=radius_miles,
        ),
        threats=ThreatDetails(
            hail_probability=potential.hail_probability,
            hail_size_range="0.75-1.5 inches" if potential.hail_probability > 30 else "< 0.75 inches",
            wind_probability=potential.wind_probability,
            wind_speed_range="50-70 mph" if potential.wind_probability > 50 else "30-50 mph",
            tornado_probability=potential.tornado_probability,
        ),
        potential_affected_customers=customer_count,
        estimated_damage_value=round(estimated_damage),
        recommendation=build_recommendation(severity, hours_until, potential.type),
        priority_level=priority_level(severity, hours_until),
        source="NWS Forecast" + (" + SPC Outlook" if outlook else ""),
        confidence=80 if outlook else 60,
        created_at=now,
    )


def outlook_to_prediction(outlook: SPCOutlook, now: datetime) -> StormPrediction:
    hours_until = (outlook.valid_time - now).total_seconds() / 3600
    category = outlook.category
    lat, lon = REGIONAL_CENTER

    if category is PredictionSeverity.HIGH:
        hail_probability, hail_range, tornado_probability = 70, "1-2+ inches", 30
    elif category is PredictionSeverity.MODERATE:
        hail_probability, hail_range, tornado_probability = 50, "0.75-1.5 inches", 10
    else:
        hail_probability, hail_range, tornado_probability = 30, "0.75-1.5 inches", 10

    return StormPrediction(
        id=f"spc-{outlook.day}-{_epoch_ms(outlook.valid_time)}",
        type="mixed",
        severity=category,
        probability=min(100, outlook.risk * 20),
        expected_start=outlook.valid_time,
        expected_end=outlook.valid_time + timedelta(hours=12),
        hours_until=round(hours_until),
        latitude=lat,
        longitude=lon,
        affected_area=AffectedArea(
            states=list(outlook.affected_states),
            radius_miles=REGIONAL_RADIUS_MILES,
        ),
        threats=ThreatDetails(
            hail_probability=hail_probability,
            hail_size_range=hail_range,
            wind_probability=60,
            wind_speed_range="50-70 mph",
            tornado_probability=tornado_probability,
        ),
        recommendation=build_recommendation(category, hours_until, "mixed"),
        priority_level=priority_level(category, hours_until),
        source=f"SPC Day {outlook.day} Outlook",
        confidence=75,
        created_at=now,
    )


def build_recommendation(severity: PredictionSeverity, hours_until: float, storm_type: str) -> str:
    tier = PredictionSeverity(severity).value
    if hours_until <= 12:
        return (
            f"URGENT: {storm_type} threat in next {round(hours_until)} hours. "
            "Have teams ready for immediate response."
        )
    if hours_until <= 24:
        return f"PREPARE: {tier} {storm_type} risk tomorrow. Pre-position canvassers in affected areas."
    if hours_until <= 48:
        return "WATCH: Storm potential in 2 days. Start pre-qualifying leads in target ZIPs."
    return f"MONITOR: {tier} risk in 3 days. Good time to review customer data in affected areas."


def priority_level(severity: PredictionSeverity, hours_until: float) -> str:
    severity = PredictionSeverity(severity)
    soon = hours_until <= 24
    if severity is PredictionSeverity.HIGH or (severity is PredictionSeverity.MODERATE and soon):
        return "critical"
    if severity is PredictionSeverity.MODERATE or (severity is PredictionSeverity.ENHANCED and soon):
        return "urgent"
    if severity is PredictionSeverity.ENHANCED or soon:
        return "prepare"
    return "watch"


def prediction_id(lat: float, lon: float, radius_miles: float, start: datetime) -> str:
    return f"pred-{lat:.4f}-{lon:.4f}-{radius_miles:g}-{_epoch_ms(start)}"


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)
