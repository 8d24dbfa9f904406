# triagebot/routes/ai_routes.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from triagebot.schemas.triage import (
    EmergencyOut,
    FinalTriageOutcome,
    SymptomCheckRequest,
    UrgencyLevel,
    analysis_payload,
)
from triagebot.services.assembler import localized_message
from triagebot.services.triage import TriageEngine
from triagebot.utils.exceptions import CollaboratorUnavailable

router = APIRouter(prefix="/api/ai", tags=["ai"])
logger = logging.getLogger("triagebot")


def get_engine(request: Request) -> TriageEngine:
    """The engine built once at startup and shared by every request."""
    engine = getattr(request.app.state, "triage_engine", None)
    if engine is None:
        raise CollaboratorUnavailable("Triage engine is not initialised")
    return engine


def emergency_out(outcome: FinalTriageOutcome, emergency_type: Optional[str]) -> dict:
    """Response `emergency` block; EMERGENCY urgency reads as an emergency to callers."""
    flagged = outcome.is_emergency or outcome.urgency_level is UrgencyLevel.EMERGENCY
    message = outcome.message if flagged == outcome.is_emergency else localized_message(flagged, outcome.language)
    return EmergencyOut(isEmergency=flagged, message=message, type=emergency_type).model_dump()


@router.post("/symptom-check", status_code=status.HTTP_200_OK)
async def ai_symptom_check(
    payload: SymptomCheckRequest,
    engine: TriageEngine = Depends(get_engine),
):
    """Run triage without storing anything."""
    outcome = await engine.triage(payload.symptoms, payload.language, payload.consultation_location)
    return {
        "success": True,
        "data": {
            "analysis": analysis_payload(outcome).model_dump(),
            "emergency": emergency_out(outcome, outcome.emergency_type),
            "language": outcome.language.value,
        },
    }
