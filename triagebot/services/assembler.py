# triagebot/services/assembler.py
# Builds the caller-facing outcome: localized message, emergency type and the
# alert decision. Persisting the alert is the caller's job.
from __future__ import annotations

from typing import Dict, Optional, Tuple

from triagebot.schemas.triage import (
    AlertDecision,
    EmergencyAssessment,
    FinalTriageOutcome,
    Language,
    SymptomNarrative,
    TriageSignals,
    UrgencyLevel,
)
from triagebot.services.arbitration import ArbitrationResult

MEDICAL_EMERGENCY = "MEDICAL_EMERGENCY"
OTHER_EMERGENCY = "OTHER"

MESSAGES: Dict[Tuple[bool, Language], str] = {
    (True, Language.EN): "Emergency situation detected. Please contact medical professional immediately.",
    (True, Language.BN): "জরুরি অবস্থা সনাক্ত হয়েছে। দ্রুত চিকিৎসকের সাথে যোগাযোগ করুন।",
    (False, Language.EN): "Analysis complete. Please consult a medical professional if symptoms persist or worsen.",
    (False, Language.BN): "বিশ্লেষণ সম্পূর্ণ হয়েছে। লক্ষণ অব্যাহত থাকলে বা বাড়লে চিকিৎসকের সাথে যোগাযোগ করুন।",
}

RECOMMENDED_ACTIONS: Dict[Language, str] = {
    Language.EN: "Contact nearest emergency services immediately",
    Language.BN: "অবিলম্বে নিকটতম জরুরি সেবায় যোগাযোগ করুন",
}


def localized_message(is_emergency: bool, language: Language) -> str:
    return MESSAGES.get((is_emergency, language)) or MESSAGES[(is_emergency, Language.EN)]


def _alert_type(arbitration: ArbitrationResult) -> str:
    # Only an explicit detector names a medical emergency; keywords and urgency alone do not.
    detectors = {"validator", "generative"}.intersection(arbitration.emergency_sources)
    return MEDICAL_EMERGENCY if detectors else OTHER_EMERGENCY


def assemble(
    arbitration: ArbitrationResult,
    narrative: SymptomNarrative,
    assessment: Optional[EmergencyAssessment],
    signals: TriageSignals,
) -> FinalTriageOutcome:
    language = narrative.language
    message = localized_message(arbitration.is_emergency, language)

    emergency_type = None
    alert = AlertDecision()
    # EMERGENCY urgency alerts even when no detector flagged an emergency
    if arbitration.record.urgency_level is UrgencyLevel.EMERGENCY:
        alert_type = _alert_type(arbitration)
        if assessment is not None and assessment.emergency_type:
            emergency_type = assessment.emergency_type
        else:
            emergency_type = alert_type
        alert_message = localized_message(True, language)
        if assessment is not None and assessment.is_emergency and assessment.message:
            alert_message = assessment.message
        alert = AlertDecision(
            should_alert=True,
            alert_type=alert_type,
            recommended_action=RECOMMENDED_ACTIONS.get(language, RECOMMENDED_ACTIONS[Language.EN]),
            message=alert_message,
        )

    return FinalTriageOutcome(
        record=arbitration.record,
        is_emergency=arbitration.is_emergency,
        message=message,
        language=language,
        emergency_type=emergency_type,
        alert=alert,
        signals=signals,
    )


__all__ = ["assemble", "localized_message", "MESSAGES", "RECOMMENDED_ACTIONS"]
