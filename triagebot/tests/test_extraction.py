import json

import pytest

from triagebot.schemas.triage import SENTINEL_CONDITION, SENTINEL_RECOMMENDATION, UrgencyLevel
from triagebot.services import extraction as ex


def _analysis(**overrides):
    data = {
        "possibleConditions": ["Migraine", "Tension headache"],
        "urgencyLevel": "MEDIUM",
        "recommendations": ["Rest in a dark room", "Stay hydrated"],
        "riskScore": 4,
        "emergencyFlags": [],
    }
    data.update(overrides)
    return json.dumps(data)


def test_structured_json_inside_prose_and_fences():
    raw = "Here is my analysis:\n```json\n" + _analysis() + "\n```\nTake care."
    rec = ex.extract(raw, "headache")
    assert rec.strategy == "structured"
    assert rec.possible_conditions == ("Migraine", "Tension headache")
    assert rec.urgency_level is UrgencyLevel.MEDIUM
    assert rec.risk_score == 4.0


def test_unknown_urgency_token_becomes_medium():
    rec = ex.extract(_analysis(urgencyLevel="critical"), "headache")
    assert rec.urgency_level is UrgencyLevel.MEDIUM


@pytest.mark.parametrize("raw_score, expected", [(14, 10.0), (-3, 0.0), ("7.5", 7.5)])
def test_risk_score_clamped(raw_score, expected):
    rec = ex.extract(_analysis(riskScore=raw_score), "headache")
    assert rec.risk_score == expected


def test_missing_risk_score_is_synthesized():
    raw = json.dumps({
        "possibleConditions": ["Angina"],
        "urgencyLevel": "HIGH",
        "recommendations": ["See a cardiologist"],
    })
    rec = ex.extract(raw, "severe chest tightness")
    # 5 + 2 (HIGH) + 2 (severe)
    assert rec.risk_score == 9.0


def test_synthesized_score_mitigating_words():
    assert ex.synthesize_risk_score(UrgencyLevel.LOW, "", "mild cough") == 2.0
    assert ex.synthesize_risk_score(UrgencyLevel.EMERGENCY, "critical", "") == 10.0


def test_lists_capped_and_deduplicated():
    raw = _analysis(
        possibleConditions=["A1", "a1", "B2", "C3", "D4", "E5", "F6"],
        recommendations=["one thing", "two things", "three things", "four things"],
    )
    rec = ex.extract(raw, "x")
    assert rec.possible_conditions == ("A1", "B2", "C3", "D4", "E5")
    assert len(rec.recommendations) == 3


def test_empty_lists_fall_back_to_sentinels():
    rec = ex.extract(_analysis(possibleConditions=[], recommendations=[]), "x")
    assert rec.possible_conditions == (SENTINEL_CONDITION,)
    assert rec.recommendations == (SENTINEL_RECOMMENDATION,)
    assert rec.has_generic_recommendations()


def test_labelled_sections_from_free_text():
    raw = (
        "Possible conditions: migraine, sinusitis\n"
        "Urgency level: HIGH\n"
        "Recommendations: drink plenty of water; see a doctor soon\n"
        "Risk score: 6\n"
    )
    rec = ex.extract(raw, "headache")
    assert rec.strategy == "pattern"
    assert rec.possible_conditions == ("migraine", "sinusitis")
    assert rec.urgency_level is UrgencyLevel.HIGH
    assert rec.recommendations == ("drink plenty of water", "see a doctor soon")
    assert rec.risk_score == 6.0


def test_bulleted_recommendations_under_label():
    raw = "Possible conditions: common cold\nRecommendations:\n- rest at home\n- drink warm fluids\n"
    rec = ex.extract(raw, "runny nose")
    assert rec.recommendations == ("rest at home", "drink warm fluids")


def test_vocabulary_conditions_and_flags():
    raw = "This looks like it could be a stroke. Immediate attention is needed."
    rec = ex.extract(raw, "face drooping")
    assert "stroke" in rec.possible_conditions
    assert "stroke" in rec.emergency_flags


def test_blank_text_gives_default_record():
    rec = ex.extract("", "anything")
    assert rec == ex.default_record()
    assert rec.urgency_level is UrgencyLevel.MEDIUM
    assert rec.risk_score == 5.0


def test_extraction_is_idempotent_on_canonical_output():
    first = ex.extract(_analysis(emergencyFlags=["chest pain"]), "x")
    second = ex.extract(first.to_json(), "x")
    assert second == first


def test_assessment_parsing():
    a = ex.extract_assessment('{"isEmergency": true, "emergencyType": "STROKE", "message": "Call now"}')
    assert a.is_emergency is True
    assert a.emergency_type == "STROKE"
    assert ex.extract_assessment('{"isEmergency": false, "emergencyType": ""}').emergency_type is None
    assert ex.extract_assessment("no json here") is None


@pytest.mark.parametrize("raw, expected", [
    ("Possible conditions: pneumonia\nUrgency: **EMERGENCY**\n", UrgencyLevel.EMERGENCY),
    ("**Urgency Level:** HIGH\nRecommendations: see a doctor today", UrgencyLevel.HIGH),
    ("Possible conditions: bronchitis. The urgency level is HIGH.", UrgencyLevel.HIGH),
    ("Urgency: `low`", UrgencyLevel.LOW),
])
def test_stated_urgency_in_markdown_and_prose(raw, expected):
    rec = ex.extract(raw, "fever")
    assert rec.strategy == "pattern"
    assert rec.urgency_level is expected


def test_markdown_emergency_urgency_sets_extractor_baseline():
    rec = ex.extract("Possible conditions: pneumonia\nUrgency: **EMERGENCY**\n", "fever")
    # 5 + 3 (EMERGENCY) + 2 (the word "emergency"), clamped
    assert rec.risk_score == 10.0
    assert "emergency" in rec.emergency_flags


def test_unknown_urgency_in_broken_json_becomes_medium():
    raw = '{"urgencyLevel": "critical", "possibleConditions": ['
    rec = ex.extract(raw, "headache")
    assert rec.strategy == "pattern"
    assert rec.urgency_level is UrgencyLevel.MEDIUM


def test_json_found_after_braces_in_prose():
    raw = "Note {see below}:\n" + _analysis(urgencyLevel="HIGH")
    rec = ex.extract(raw, "headache")
    assert rec.strategy == "structured"
    assert rec.urgency_level is UrgencyLevel.HIGH
    assert rec.possible_conditions == ("Migraine", "Tension headache")
