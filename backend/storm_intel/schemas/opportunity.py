from datetime import datetime

from pydantic import BaseModel


class OpportunityLocation(BaseModel):
    county: str
    state: str
    latitude: float | None = None
    longitude: float | None = None


class OpportunityDetails(BaseModel):
    hail_size: float | None = None  # inches
    wind_speed: float | None = None  # mph
    description: str = ""


class StormOpportunity(BaseModel):
    id: str
    type: str  # hail, wind
    severity: str  # moderate, high, critical
    location: OpportunityLocation
    event_date: datetime
    details: OpportunityDetails
    estimated_affected_homes: int = 0
    estimated_opportunity_value: float = 0.0
    affected_customer_ids: list[str] = []
    recommended_action: str = ""
    priority: int = 0  # 1-10


class OpportunitySummary(BaseModel):
    total_opportunities: int = 0
    critical_opportunities: int = 0
    estimated_affected_homes: int = 0
    estimated_total_value: float = 0.0
    estimated_total_value_formatted: str = "$0K"


class OpportunitiesResponse(BaseModel):
    success: bool = True
    state: str
    summary: OpportunitySummary
    opportunities: list[StormOpportunity] = []
    timestamp: datetime


class DailyStormBrief(BaseModel):
    date: datetime
    state: str
    summary: str
    total_opportunities: int = 0
    estimated_total_value: float = 0.0
    top_opportunities: list[StormOpportunity] = []
    affected_counties: list[str] = []
    canvassing_recommendations: list[str] = []
