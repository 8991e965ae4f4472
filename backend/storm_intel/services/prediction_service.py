"""Predictive storm alerts: NWS forecasts + SPC outlooks for the next 72 hours.

One instance is built at application start-up and shared by request
handlers and the scheduler. It owns the SPC outlook cache; everything else
is recomputed per call.
"""

import asyncio
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from sqlalchemy.orm import Session

from storm_intel.errors import InvalidRequestError, UpstreamUnavailableError
from storm_intel.models.crm import Customer
from storm_intel.schemas.forecast import ForecastPeriod, SPCOutlook
from storm_intel.schemas.prediction import AffectedCustomer, PredictionSummary, StormPrediction
from storm_intel.services import nws_client, prediction_classifier, spc_client
from storm_intel.services.severity import prediction_at_least
from storm_intel.territory.definitions import (
    MONITORING_LOCATIONS,
    REGIONAL_CENTER,
    REGIONAL_RADIUS_MILES,
    MonitoringLocation,
)

logger = logging.getLogger(__name__)

OUTLOOK_DAYS = (1, 2, 3)
ACTIVE_CUSTOMER_STATUSES = ("lead", "prospect", "customer")
EARTH_RADIUS_MILES = 3959.0
MILES_PER_DEGREE = 69.0

_PRED_ID_RE = re.compile(
    r"^pred-(?P<lat>-?\d+(?:\.\d+)?)-(?P<lon>-?\d+(?:\.\d+)?)-(?P<radius>\d+(?:\.\d+)?)-\d+$"
)
_SPC_ID_RE = re.compile(r"^spc-\d+-\d+$")

ForecastFetcher = Callable[[MonitoringLocation], Awaitable[list[ForecastPeriod] | None]]
OutlookFetcher = Callable[[int], Awaitable[SPCOutlook | None]]


class PredictiveStormService:
    def __init__(
        self,
        forecast_fetcher: ForecastFetcher = nws_client.fetch_forecast,
        outlook_fetcher: OutlookFetcher = spc_client.fetch_day_outlook,
        locations: list[MonitoringLocation] | None = None,
        outlook_ttl: timedelta = timedelta(minutes=60),
        radius_miles: float = 25.0,
        avg_job_value: float = 15000.0,
    ):
        self._fetch_forecast = forecast_fetcher
        self._fetch_outlook = outlook_fetcher
        self.locations = locations if locations is not None else MONITORING_LOCATIONS
        self.outlook_ttl = outlook_ttl
        self.radius_miles = radius_miles
        self.avg_job_value = avg_job_value

        # (fetched_at, outlooks), swapped as a unit; the scheduler refreshes from its own loop
        self._outlook_cache: tuple[datetime | None, list[SPCOutlook]] = (None, [])

    # --- SPC outlook cache ---

    async def refresh_outlooks(self) -> bool:
        """Re-fetch day 1-3 outlooks. Returns False when every day failed."""
        results = await asyncio.gather(
            *(self._fetch_outlook(day) for day in OUTLOOK_DAYS),
            return_exceptions=True,
        )
        outlooks, failures = [], 0
        for day, r in zip(OUTLOOK_DAYS, results):
            if isinstance(r, BaseException):
                failures += 1
                logger.warning("SPC day %d outlook fetch failed: %s", day, r)
            elif r is not None:
                outlooks.append(r)

        if failures == len(OUTLOOK_DAYS):
            return False

        self._outlook_cache = (datetime.now(timezone.utc), outlooks)
        logger.info("SPC outlook cache refreshed: %d active outlook(s)", len(outlooks))
        return True

    async def _get_outlooks(self) -> tuple[list[SPCOutlook], bool]:
        fetched_at, outlooks = self._outlook_cache
        if fetched_at is not None and datetime.now(timezone.utc) - fetched_at < self.outlook_ttl:
            return outlooks, True
        ok = await self.refresh_outlooks()
        return self._outlook_cache[1], ok

    # --- Predictions ---

    async def get_predictions(
        self,
        db: Session,
        state: str | None = None,
        hours_ahead: int = 72,
        min_severity: str | None = None,
        now: datetime | None = None,
    ) -> list[StormPrediction]:
        now = now or datetime.now(timezone.utc)
        state = state.upper() if state else None
        locations = [l for l in self.locations if state is None or l.state == state]

        (outlooks, outlooks_ok), forecasts = await asyncio.gather(
            self._get_outlooks(),
            asyncio.gather(*(self._fetch_forecast(loc) for loc in locations), return_exceptions=True),
        )

        forecasts_ok = False
        predictions: list[StormPrediction] = []
        for loc, periods in zip(locations, forecasts):
            if isinstance(periods, BaseException):
                logger.warning("Forecast for %s failed: %s", loc.name, periods)
                continue
            if periods is None:
                continue
            forecasts_ok = True

            for potential in prediction_classifier.analyze_periods(periods, loc):
                hours_until = (potential.period.start_time - now).total_seconds() / 3600
                if not 0 < hours_until <= hours_ahead:
                    continue
                customers = await asyncio.to_thread(
                    self._customers_near,
                    db, potential.latitude, potential.longitude, self.radius_miles,
                )
                zip_codes = sorted({c.zip_code for c, _ in customers})
                predictions.append(prediction_classifier.build_prediction(
                    potential,
                    outlooks,
                    now,
                    self.radius_miles,
                    customer_count=len(customers),
                    zip_codes=zip_codes,
                    avg_job_value=self.avg_job_value,
                ))

        if not forecasts_ok and not outlooks_ok:
            logger.error("Predictive sources unavailable (NWS and SPC both failed)")
            raise UpstreamUnavailableError("Weather prediction sources are unavailable")

        for outlook in outlooks:
            if state and state not in outlook.affected_states:
                continue
            hours_until = (outlook.valid_time - now).total_seconds() / 3600
            if 0 < hours_until <= hours_ahead:
                predictions.append(prediction_classifier.outlook_to_prediction(outlook, now))

        if state:
            predictions = [p for p in predictions if state in p.affected_area.states]
        if min_severity:
            allowed = set(prediction_at_least(min_severity))
            predictions = [p for p in predictions if p.severity in allowed]

        return sorted(predictions, key=lambda p: (p.expected_start, p.id))

    # --- Affected customers ---

    def get_affected_customers(self, db: Session, prediction_id: str) -> list[AffectedCustomer]:
        center_lat, center_lon, radius = resolve_prediction_center(prediction_id, self.radius_miles)
        customers = self._customers_near(db, center_lat, center_lon, radius)
        return [
            AffectedCustomer(
                id=c.id,
                first_name=c.first_name,
                last_name=c.last_name,
                address=c.address,
                city=c.city,
                state=c.state,
                zip_code=c.zip_code,
                phone=c.phone,
                lead_score=c.lead_score,
                estimated_job_value=c.estimated_job_value,
                distance_from_center=round(distance, 2),
                storm_prediction_id=prediction_id,
            )
            for c, distance in customers
        ]

    def _customers_near(
        self, db: Session, lat: float, lon: float, radius_miles: float,
    ) -> list[tuple[Customer, float]]:
        """Active customers within the radius, highest lead score first."""
        lat_delta = radius_miles / MILES_PER_DEGREE
        lon_delta = radius_miles / (MILES_PER_DEGREE * max(math.cos(math.radians(lat)), 0.01))
        rows = (
            db.query(Customer)
            .filter(Customer.latitude.between(lat - lat_delta, lat + lat_delta))
            .filter(Customer.longitude.between(lon - lon_delta, lon + lon_delta))
            .filter(Customer.status.in_(ACTIVE_CUSTOMER_STATUSES))
            .all()
        )
        within = []
        for c in rows:
            d = haversine_miles(lat, lon, c.latitude, c.longitude)
            if d <= radius_miles:
                within.append((c, d))
        within.sort(key=lambda pair: (-pair[0].lead_score, pair[1], pair[0].id))
        return within


def summarize(predictions: list[StormPrediction]) -> PredictionSummary:
    by_state: dict[str, list[StormPrediction]] = {}
    for p in predictions:
        for s in p.affected_area.states:
            by_state.setdefault(s, []).append(p)

    return PredictionSummary(
        total_predictions=len(predictions),
        urgent_count=sum(1 for p in predictions if p.priority_level in ("urgent", "critical")),
        next_24_hours=[p for p in predictions if p.hours_until <= 24],
        next_48_hours=[p for p in predictions if 24 < p.hours_until <= 48],
        next_72_hours=[p for p in predictions if 48 < p.hours_until <= 72],
        by_state=by_state,
        total_affected_customers=sum(p.potential_affected_customers for p in predictions),
        total_potential_value=sum(p.estimated_damage_value for p in predictions),
    )


def resolve_prediction_center(prediction_id: str, default_radius: float) -> tuple[float, float, float]:
    m = _PRED_ID_RE.match(prediction_id)
    if m:
        radius = float(m.group("radius")) or default_radius
        return float(m.group("lat")), float(m.group("lon")), radius
    if _SPC_ID_RE.match(prediction_id):
        return REGIONAL_CENTER[0], REGIONAL_CENTER[1], REGIONAL_RADIUS_MILES
    raise InvalidRequestError(f"Prediction id {prediction_id!r} does not identify a location")


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
