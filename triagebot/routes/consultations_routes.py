# triagebot/routes/consultations_routes.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from triagebot.auth.deps import get_current_user_id
from triagebot.config.settings import get_settings
from triagebot.db.session import get_db
from triagebot.models.consultation import Consultation
from triagebot.routes.ai_routes import emergency_out, get_engine
from triagebot.schemas.triage import (
    SymptomCheckRequest,
    SymptomNarrative,
    analysis_payload,
)
from triagebot.services.consultations import list_consultations, record_consultation
from triagebot.services.triage import TriageEngine

router = APIRouter(prefix="/api/consultations", tags=["consultations"])
logger = logging.getLogger("triagebot")

MESSAGES = {
    "EN": "Symptom analysis completed successfully",
    "BN": "লক্ষণ বিশ্লেষণ সফলভাবে সম্পন্ন হয়েছে",
}


def _consultation_out(item: Consultation) -> dict:
    return {
        "id": item.id,
        "symptoms": item.symptoms,
        "language": item.language,
        "location": item.location,
        "urgencyLevel": item.urgency_level,
        "status": item.status,
        "possibleConditions": item.possible_conditions or [],
        "recommendations": item.recommendations or [],
        "riskScore": item.risk_score,
        "emergencyFlags": item.emergency_flags or [],
        "createdAt": item.created_at.isoformat() if item.created_at else None,
    }


@router.post("/symptom-check", status_code=status.HTTP_201_CREATED)
async def symptom_check(
    payload: SymptomCheckRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    engine: TriageEngine = Depends(get_engine),
):
    """Triage the narrative, store the consultation (and alert), return the result."""
    outcome = await engine.triage(payload.symptoms, payload.language, payload.consultation_location)
    narrative = SymptomNarrative.parse(payload.symptoms, outcome.language, payload.consultation_location)

    consultation, alert = record_consultation(
        db,
        user_id,
        narrative,
        outcome,
        location=payload.consultation_location,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )

    language = outcome.language.value
    return {
        "success": True,
        "message": MESSAGES.get(language, MESSAGES["EN"]),
        "data": {
            "consultationId": consultation.id,
            "symptoms": consultation.symptoms,
            "analysis": analysis_payload(outcome).model_dump(),
            "emergency": emergency_out(outcome, alert.emergency_type if alert is not None else outcome.emergency_type),
            "language": language,
            "timestamp": consultation.created_at.isoformat() if consultation.created_at else None,
        },
    }


@router.get("")
def get_consultations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    limit = min(limit, get_settings().history_page_limit)
    items, total = list_consultations(db, user_id, page=page, limit=limit, status=status_filter)
    pages = (total + limit - 1) // limit
    return {
        "success": True,
        "data": {
            "consultations": [_consultation_out(c) for c in items],
            "pagination": {"page": page, "limit": limit, "total": total, "pages": pages},
        },
    }
