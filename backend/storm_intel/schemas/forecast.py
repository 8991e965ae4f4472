from datetime import datetime

from pydantic import BaseModel

from storm_intel.services.severity import PredictionSeverity


class ForecastPeriod(BaseModel):
    name: str = ""
    start_time: datetime
    end_time: datetime
    temperature: float | None = None
    wind_speed_mph: float | None = None
    short_forecast: str = ""
    detailed_forecast: str = ""


class StormPotentialPeriod(BaseModel):
    """A forecast period that mentions storm activity at a monitoring location."""
    period: ForecastPeriod
    location_name: str
    state: str
    latitude: float
    longitude: float
    type: str
    severity: PredictionSeverity
    hail_probability: int
    wind_probability: int
    tornado_probability: int


class SPCOutlook(BaseModel):
    day: int
    category: PredictionSeverity
    valid_time: datetime
    affected_states: list[str] = []
    risk: int = 0  # 1 (marginal) .. 5 (high)
