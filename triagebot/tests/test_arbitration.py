import itertools

import pytest
from pydantic import ValidationError

from triagebot.schemas.triage import FinalTriageOutcome, TriageRecord, UrgencyLevel
from triagebot.services.arbitration import arbitrate
from triagebot.services.extraction import default_record


def _record(urgency=UrgencyLevel.MEDIUM, recommendations=("Rest and drink fluids",)):
    return TriageRecord(
        possible_conditions=("Viral infection",),
        urgency_level=urgency,
        recommendations=recommendations,
        risk_score=5.0,
    )


def test_lexical_signal_forces_emergency():
    result = arbitrate(True, _record(UrgencyLevel.LOW), None, None)
    assert result.is_emergency
    assert result.record.urgency_level is UrgencyLevel.EMERGENCY
    assert result.emergency_sources == ("lexical",)


def test_validator_urgency_only_raises():
    assert arbitrate(False, _record(UrgencyLevel.MEDIUM), UrgencyLevel.LOW, False).record.urgency_level is UrgencyLevel.MEDIUM
    assert arbitrate(False, _record(UrgencyLevel.MEDIUM), UrgencyLevel.HIGH, False).record.urgency_level is UrgencyLevel.HIGH


def test_validator_emergency_urgency_raises_without_flagging():
    result = arbitrate(False, _record(), UrgencyLevel.EMERGENCY, None)
    assert result.record.urgency_level is UrgencyLevel.EMERGENCY
    assert not result.is_emergency


def test_extractor_emergency_counts_as_vote():
    result = arbitrate(False, _record(UrgencyLevel.EMERGENCY), None, None)
    assert result.is_emergency
    assert result.emergency_sources == ("extractor",)


def test_generative_vote_counts():
    result = arbitrate(False, _record(), None, False, generative_emergency=True)
    assert result.is_emergency
    assert "generative" in result.emergency_sources


def test_generic_recommendations_replaced_by_classifier_vote():
    votes = ("Rest and monitor your symptoms", "Consult a healthcare provider")
    result = arbitrate(False, default_record(), None, None, validator_recommendations=votes)
    assert result.record.recommendations == votes


def test_specific_recommendations_kept():
    rec = _record()
    result = arbitrate(False, rec, None, None, validator_recommendations=("Take preventive measures",))
    assert result.record.recommendations == rec.recommendations


def test_no_votes_keeps_record_unchanged():
    rec = _record(UrgencyLevel.HIGH)
    result = arbitrate(False, rec, None, None)
    assert result.record == rec
    assert not result.is_emergency


BOOL_VOTES = (None, False, True)
URGENCY_VOTES = (None,) + tuple(UrgencyLevel)


@pytest.mark.parametrize("baseline", list(UrgencyLevel))
def test_dropping_a_vote_never_raises_severity(baseline):
    rec = _record(baseline)
    for lexical, v_urg, v_em, g_em in itertools.product((False, True), URGENCY_VOTES, BOOL_VOTES, BOOL_VOTES):
        full = arbitrate(lexical, rec, v_urg, v_em, g_em)
        for reduced in (
            arbitrate(lexical, rec, None, v_em, g_em),
            arbitrate(lexical, rec, v_urg, None, g_em),
            arbitrate(lexical, rec, v_urg, v_em, None),
        ):
            assert reduced.record.urgency_level <= full.record.urgency_level
            assert full.is_emergency or not reduced.is_emergency
        # escalation invariant
        if full.is_emergency:
            assert full.record.urgency_level is UrgencyLevel.EMERGENCY
        assert full.record.urgency_level >= baseline


def test_outcome_rejects_emergency_without_emergency_urgency():
    with pytest.raises(ValidationError):
        FinalTriageOutcome(record=_record(UrgencyLevel.HIGH), is_emergency=True, message="x")


def test_arbitration_is_deterministic():
    a = arbitrate(True, _record(), UrgencyLevel.HIGH, False, True, ("Take preventive measures",))
    b = arbitrate(True, _record(), UrgencyLevel.HIGH, False, True, ("Take preventive measures",))
    assert a == b
