from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storm_intel.services.severity import PredictionSeverity


class AffectedArea(BaseModel):
    states: list[str] = []
    counties: list[str] = []
    zip_codes: list[str] = []
    radius_miles: float = 25.0


class ThreatDetails(BaseModel):
    hail_probability: int = 0
    hail_size_range: str = ""
    wind_probability: int = 0
    wind_speed_range: str = ""
    tornado_probability: int = 0


class StormPrediction(BaseModel):
    id: str
    type: str  # hail, wind, tornado, thunderstorm, mixed
    severity: PredictionSeverity
    probability: int = 0  # 0-100
    expected_start: datetime
    expected_end: datetime
    hours_until: int
    latitude: float
    longitude: float
    affected_area: AffectedArea
    threats: ThreatDetails
    potential_affected_customers: int = 0
    estimated_damage_value: float = 0.0
    recommendation: str = ""
    priority_level: str = "watch"  # watch, prepare, urgent, critical
    source: str = ""
    confidence: int = 0  # 0-100
    created_at: datetime


class PredictionSummary(BaseModel):
    total_predictions: int = 0
    urgent_count: int = 0
    next_24_hours: list[StormPrediction] = []
    next_48_hours: list[StormPrediction] = []
    next_72_hours: list[StormPrediction] = []
    by_state: dict[str, list[StormPrediction]] = {}
    total_affected_customers: int = 0
    total_potential_value: float = 0.0


class PredictionsMeta(BaseModel):
    total_predictions: int
    hours_ahead: int
    state: str
    generated_at: datetime


class PredictionsResponse(BaseModel):
    success: bool = True
    data: list[StormPrediction] = []
    meta: PredictionsMeta


class PredictionSummaryResponse(BaseModel):
    success: bool = True
    data: PredictionSummary


class AffectedCustomer(BaseModel):
    id: str
    first_name: str
    last_name: str
    address: str
    city: str
    state: str
    zip_code: str
    phone: str | None = None
    lead_score: int = 0
    estimated_job_value: float | None = None
    distance_from_center: float = 0.0
    storm_prediction_id: str


class AffectedCustomersMeta(BaseModel):
    total: int
    prediction_id: str
    limit: int


class AffectedCustomersResponse(BaseModel):
    success: bool = True
    data: list[AffectedCustomer] = []
    meta: AffectedCustomersMeta


class NotifyRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prediction_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    body: str
    severity: PredictionSeverity
    hours_until: float
    affected_states: list[str]
    user_ids: list[str] | None = None


class NotifyResponse(BaseModel):
    success: bool = True
    message: str
    notified: int = 0
    total: int = 0
    pruned: int = 0
