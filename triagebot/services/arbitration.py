# triagebot/services/arbitration.py
# Merges the extracted record with the independent emergency/urgency votes.
# Pure: no I/O, same inputs always give the same result.
from __future__ import annotations

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from triagebot.schemas.triage import TriageRecord, UrgencyLevel


class ArbitrationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    record: TriageRecord
    is_emergency: bool
    emergency_sources: Tuple[str, ...] = ()


def _emergency_votes(
    lexical_signal: bool,
    baseline: UrgencyLevel,
    validator_emergency: Optional[bool],
    generative_emergency: Optional[bool],
) -> Tuple[str, ...]:
    votes = []
    if lexical_signal:
        votes.append("lexical")
    if validator_emergency is True:
        votes.append("validator")
    if generative_emergency is True:
        votes.append("generative")
    if baseline is UrgencyLevel.EMERGENCY:
        votes.append("extractor")
    return tuple(votes)


def arbitrate(
    lexical_signal: bool,
    extractor_record: TriageRecord,
    validator_urgency: Optional[UrgencyLevel],
    validator_emergency: Optional[bool],
    generative_emergency: Optional[bool] = None,
    validator_recommendations: Optional[Tuple[str, ...]] = None,
) -> ArbitrationResult:
    """Escalate-only merge. None means the source gave no vote and is skipped.

    Urgency is the maximum of the extractor's level and the classifier's vote;
    any emergency vote forces EMERGENCY. Nothing here lowers severity.
    """
    baseline = extractor_record.urgency_level
    urgency = baseline if validator_urgency is None else max(baseline, validator_urgency)

    sources = _emergency_votes(lexical_signal, baseline, validator_emergency, generative_emergency)
    is_emergency = bool(sources)
    if is_emergency:
        urgency = UrgencyLevel.EMERGENCY

    update = {}
    if urgency is not baseline:
        update["urgency_level"] = urgency
    if validator_recommendations and extractor_record.has_generic_recommendations():
        update["recommendations"] = tuple(validator_recommendations)

    record = extractor_record.model_copy(update=update) if update else extractor_record
    return ArbitrationResult(record=record, is_emergency=is_emergency, emergency_sources=sources)


__all__ = ["ArbitrationResult", "arbitrate"]
