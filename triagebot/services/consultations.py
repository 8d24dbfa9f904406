from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session

from triagebot.models.consultation import (
    STATUS_EMERGENCY,
    STATUS_PENDING,
    Consultation,
    EmergencyAlert,
)
from triagebot.schemas.triage import FinalTriageOutcome, SymptomNarrative, UrgencyLevel

logger = logging.getLogger("triagebot")


def _outcome_json(outcome: FinalTriageOutcome) -> Dict[str, Any]:
    return outcome.model_dump(mode="json")


def record_consultation(
    db: Session,
    user_id: str,
    narrative: SymptomNarrative,
    outcome: FinalTriageOutcome,
    location: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> Tuple[Consultation, Optional[EmergencyAlert]]:
    """Persist one triage run and, when the outcome calls for it, its alert."""
    rec = outcome.record
    consultation = Consultation(
        user_id=str(user_id),
        symptoms=narrative.symptoms,
        language=narrative.language.value,
        location=location or narrative.context,
        urgency_level=rec.urgency_level.value,
        status=STATUS_EMERGENCY if rec.urgency_level is UrgencyLevel.EMERGENCY else STATUS_PENDING,
        possible_conditions=list(rec.possible_conditions),
        recommendations=list(rec.recommendations),
        risk_score=rec.risk_score,
        emergency_flags=list(rec.emergency_flags),
        ai_response=_outcome_json(outcome),
    )
    db.add(consultation)

    alert = None
    if outcome.alert.should_alert:
        alert = EmergencyAlert(
            consultation=consultation,
            emergency_type=outcome.alert.alert_type or "OTHER",
            urgency_level=UrgencyLevel.EMERGENCY.value,
            alert_message=outcome.alert.message or outcome.message,
            recommended_action=outcome.alert.recommended_action or "",
            latitude=latitude,
            longitude=longitude,
        )
        db.add(alert)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(consultation)
    if alert is not None:
        db.refresh(alert)

    logger.info({
        "function": "record_consultation",
        "consultation_id": consultation.id,
        "status": consultation.status,
        "alert_id": alert.id if alert is not None else None,
    })
    return consultation, alert


def list_consultations(
    db: Session,
    user_id: str,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
) -> Tuple[List[Consultation], int]:
    """Newest first. Returns (items on the page, total matching rows)."""
    page = max(1, int(page))
    limit = max(1, int(limit))
    q = db.query(Consultation).filter(Consultation.user_id == str(user_id))
    if status:
        q = q.filter(Consultation.status == status.strip().upper())
    total = q.count()
    items = (
        q.order_by(desc(Consultation.created_at), desc(Consultation.id))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


__all__ = ["record_consultation", "list_consultations"]
