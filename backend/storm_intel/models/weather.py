from uuid import uuid4

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.sql import func

from storm_intel.database import Base


class WeatherEvent(Base):
    """Historical storm report. Written by ingestion, read-only to the engine."""
    __tablename__ = "weather_events"

    id = Column(String(36), primary_key=True, default=lambda: uuid4().hex)
    latitude = Column(Float)  # null until geocoded
    longitude = Column(Float)
    zip_code = Column(String(10))
    city = Column(String(100))
    county = Column(String(100), index=True)
    state = Column(String(2), index=True)
    event_type = Column(String(20), nullable=False)  # hail, wind, tornado, flood, hurricane, general
    event_date = Column(DateTime(timezone=True), nullable=False, index=True)
    severity = Column(String(20), nullable=False, index=True)  # minor, moderate, severe, catastrophic
    hail_size = Column(Float)  # inches
    wind_speed = Column(Float)  # mph
    wind_gust = Column(Float)
    estimated_damage = Column(Float)  # USD
    affected_customers = Column(Integer, default=0, nullable=False)
    source = Column(String(30), nullable=False, default="noaa")
    source_event_id = Column(String(100))
    raw_json = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
