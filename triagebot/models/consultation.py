"""Consultation and EmergencyAlert models.

Generic String/JSON column types so the same models run on SQLite and Postgres.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON as SA_JSON

from triagebot.db.session import Base

STATUS_EMERGENCY = "EMERGENCY"
STATUS_PENDING = "PENDING"


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Consultation(Base):
    __tablename__ = "consultations"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    symptoms = Column(Text, nullable=False)
    language = Column(String(8), nullable=False, default="EN")
    location = Column(String(255), nullable=True)
    urgency_level = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    possible_conditions = Column(SA_JSON, nullable=False, default=list)
    recommendations = Column(SA_JSON, nullable=False, default=list)
    risk_score = Column(Float, nullable=False, default=5.0)
    emergency_flags = Column(SA_JSON, nullable=False, default=list)
    ai_response = Column(SA_JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, server_default=func.now(), index=True)

    alerts = relationship("EmergencyAlert", back_populates="consultation", cascade="all, delete-orphan")


class EmergencyAlert(Base):
    __tablename__ = "emergency_alerts"

    id = Column(String(36), primary_key=True, default=_uuid)
    consultation_id = Column(String(36), ForeignKey("consultations.id"), nullable=False, index=True)
    emergency_type = Column(String(64), nullable=False)
    urgency_level = Column(String(16), nullable=False, default="EMERGENCY")
    alert_message = Column(Text, nullable=False)
    recommended_action = Column(Text, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_now, server_default=func.now())

    consultation = relationship("Consultation", back_populates="alerts")
