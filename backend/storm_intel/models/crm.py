from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from storm_intel.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: uuid4().hex)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default="rep")  # rep, manager, admin
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: uuid4().hex)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(2), nullable=False, index=True)
    zip_code = Column(String(10), nullable=False, index=True)
    county = Column(String(100))
    latitude = Column(Float)
    longitude = Column(Float)
    phone = Column(String(30))
    lead_score = Column(Integer, nullable=False, default=0)
    estimated_job_value = Column(Float)
    status = Column(String(20), nullable=False, default="lead")  # lead, prospect, customer, closed-lost
    created_at = Column(DateTime, server_default=func.now())
