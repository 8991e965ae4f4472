from datetime import datetime

from pydantic import BaseModel


class EventMetadata(BaseModel):
    id: str
    type: str
    date: datetime
    severity: str
    location: str
    hail_size: float | None = None
    wind_speed: float | None = None
    affected_customers: int = 0
    estimated_damage: float | None = None


class HeatmapPoint(BaseModel):
    lat: float
    lng: float
    intensity: float  # 0-1
    metadata: EventMetadata


class RegionSummary(BaseModel):
    region: str
    event_count: int = 0
    avg_intensity: float = 0.0
    total_customers: int = 0
    total_damage: float = 0.0


class DateRange(BaseModel):
    start: datetime
    end: datetime


class HeatmapSummary(BaseModel):
    total_events: int = 0
    avg_intensity: float = 0.0
    top_regions: list[RegionSummary] = []
    date_range: DateRange


class HeatmapResponse(BaseModel):
    points: list[HeatmapPoint] = []
    summary: HeatmapSummary
