from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.sql import func

from storm_intel.database import Base


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: uuid4().hex)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint = Column(String(1000), nullable=False, unique=True)
    p256dh = Column(String(255), nullable=False)
    auth = Column(String(255), nullable=False)
    user_agent = Column(String(500))
    created_at = Column(DateTime, server_default=func.now())


class Activity(Base):
    """Audit trail entry."""
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=lambda: uuid4().hex)
    user_id = Column(String(36), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(String(200))
    description = Column(Text, nullable=False)
    metadata_json = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
