# triagebot/schemas/triage.py
from __future__ import annotations

import json
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from triagebot.utils.exceptions import InputError

MAX_CONDITIONS = 5
MAX_RECOMMENDATIONS = 3
MAX_NARRATIVE_CHARS = 5000

SENTINEL_CONDITION = "Common illness"
SENTINEL_RECOMMENDATION = "Consult a healthcare provider"


class Language(str, Enum):
    EN = "EN"
    BN = "BN"


class UrgencyLevel(Enum):
    """Ordinal urgency. Comparison follows LOW < MEDIUM < HIGH < EMERGENCY."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EMERGENCY = "EMERGENCY"

    @property
    def rank(self) -> int:
        return _URGENCY_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, UrgencyLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, UrgencyLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, UrgencyLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, UrgencyLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def normalize(cls, token: object) -> "UrgencyLevel":
        """Map any token onto the closed set; unknown values become MEDIUM."""
        if isinstance(token, UrgencyLevel):
            return token
        if isinstance(token, str):
            try:
                return cls(token.strip().upper())
            except ValueError:
                pass
        return cls.MEDIUM


_URGENCY_ORDER = (UrgencyLevel.LOW, UrgencyLevel.MEDIUM, UrgencyLevel.HIGH, UrgencyLevel.EMERGENCY)


class SymptomNarrative(BaseModel):
    """Input to one triage run."""

    model_config = ConfigDict(frozen=True)

    symptoms: str = Field(..., min_length=1, max_length=MAX_NARRATIVE_CHARS)
    language: Language = Language.EN
    context: Optional[str] = Field(None, description="Consultation location, if any.")

    @field_validator("symptoms")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Symptoms are required")
        return v

    @classmethod
    def parse(cls, symptoms: object, language: object = Language.EN, context: Optional[str] = None) -> "SymptomNarrative":
        """Build a narrative or raise InputError; nothing is coerced silently."""
        if isinstance(language, str):
            language = language.strip().upper()
        try:
            return cls(symptoms=symptoms, language=language, context=context)
        except ValidationError as exc:
            details = [
                {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
                for err in exc.errors()
            ]
            raise InputError("Invalid symptom narrative", details=details) from exc


class TriageRecord(BaseModel):
    """Canonical result of one extraction attempt."""

    model_config = ConfigDict(frozen=True)

    possible_conditions: Tuple[str, ...] = Field(..., min_length=1, max_length=MAX_CONDITIONS)
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    recommendations: Tuple[str, ...] = Field(..., min_length=1, max_length=MAX_RECOMMENDATIONS)
    risk_score: float = Field(5.0, ge=0.0, le=10.0)
    emergency_flags: Tuple[str, ...] = ()
    strategy: str = Field("default", description="Extraction strategy that produced the record.")

    def to_json(self) -> str:
        """Render the camelCase shape the analysis prompt asks the model for."""
        return json.dumps(
            {
                "possibleConditions": list(self.possible_conditions),
                "urgencyLevel": self.urgency_level.value,
                "recommendations": list(self.recommendations),
                "riskScore": self.risk_score,
                "emergencyFlags": list(self.emergency_flags),
            },
            ensure_ascii=False,
        )

    def has_generic_recommendations(self) -> bool:
        return not self.recommendations or self.recommendations == (SENTINEL_RECOMMENDATION,)


class EmergencyAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_emergency: bool = False
    emergency_type: Optional[str] = None
    message: str = ""


class AlertDecision(BaseModel):
    """Whether the caller should raise an emergency alert. Raising it is not our job."""

    model_config = ConfigDict(frozen=True)

    should_alert: bool = False
    alert_type: Optional[str] = None
    recommended_action: Optional[str] = None
    message: Optional[str] = None


class TriageSignals(BaseModel):
    """Per-source votes, kept for audit. None means the source gave no vote."""

    model_config = ConfigDict(frozen=True)

    lexical: bool = False
    lexical_keywords: Tuple[str, ...] = ()
    generative_emergency: Optional[bool] = None
    validator_urgency: Optional[UrgencyLevel] = None
    validator_emergency: Optional[bool] = None
    failures: Tuple[str, ...] = ()


class FinalTriageOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    record: TriageRecord
    is_emergency: bool
    message: str
    language: Language = Language.EN
    emergency_type: Optional[str] = None
    alert: AlertDecision = AlertDecision()
    signals: TriageSignals = TriageSignals()

    @model_validator(mode="after")
    def _escalation_invariant(self) -> "FinalTriageOutcome":
        if self.is_emergency and self.record.urgency_level is not UrgencyLevel.EMERGENCY:
            raise ValueError("emergency outcome must carry EMERGENCY urgency")
        return self

    @property
    def urgency_level(self) -> UrgencyLevel:
        return self.record.urgency_level


# ---------- HTTP payloads ----------
class SymptomCheckRequest(BaseModel):
    """Request body for the symptom-check endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    symptoms: str = Field(..., max_length=MAX_NARRATIVE_CHARS, description="Free-text symptom narrative.")
    language: str = Field("EN", description="Language tag (EN or BN).")
    consultation_location: Optional[str] = Field(None, alias="consultationLocation")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class AnalysisOut(BaseModel):
    possibleConditions: List[str]
    urgencyLevel: str
    recommendations: List[str]
    riskScore: float
    emergencyFlags: List[str]


class EmergencyOut(BaseModel):
    isEmergency: bool
    message: str
    type: Optional[str] = None


def analysis_payload(outcome: FinalTriageOutcome) -> AnalysisOut:
    rec = outcome.record
    return AnalysisOut(
        possibleConditions=list(rec.possible_conditions),
        urgencyLevel=rec.urgency_level.value,
        recommendations=list(rec.recommendations),
        riskScore=rec.risk_score,
        emergencyFlags=list(rec.emergency_flags),
    )
