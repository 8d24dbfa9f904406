"""
Structured extraction of a TriageRecord from raw model output.

Behavior:
- Strategies are plain functions tried in order; each returns a record or
  None. The first record wins.
- `parse_structured` accepts the JSON shape the analysis prompt asks for,
  even when wrapped in code fences or prose.
- `parse_labelled_sections` recovers fields from free text
  ("Possible conditions: ...", "Recommendations: ...").
- When nothing usable is present the fixed safe default is returned.

Unknown urgency tokens always normalize to MEDIUM, never LOW.
"""
from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from triagebot.schemas.triage import (
    MAX_CONDITIONS,
    MAX_RECOMMENDATIONS,
    SENTINEL_CONDITION,
    SENTINEL_RECOMMENDATION,
    EmergencyAssessment,
    TriageRecord,
    UrgencyLevel,
)

logger = logging.getLogger("triagebot")

MAX_EMERGENCY_FLAGS = 3
BASE_RISK_SCORE = 5.0

URGENCY_RISK_OFFSET: Dict[UrgencyLevel, float] = {
    UrgencyLevel.LOW: -2.0,
    UrgencyLevel.MEDIUM: 0.0,
    UrgencyLevel.HIGH: 2.0,
    UrgencyLevel.EMERGENCY: 3.0,
}

HIGH_RISK_WORDS = re.compile(r"\b(severe|critical|life[\s-]?threatening|intense|unbearable|emergency)\b", re.I)
LOW_RISK_WORDS = re.compile(r"\b(mild|slight|minor|occasional)\b", re.I)

# Section body: everything up to the next sentence end, line end, numbered item
# or another section label.
_BODY = r"([^.\n]*?)(?=\s*(?:\d+[.)]\s|recommendations?|urgency|risk|emergency\s*flags?|[.\n]|$))"

CONDITION_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"possible[\s_]*conditions?[\"']?\s*:?[ \t]*" + _BODY, re.I),
    re.compile(r"differential\s+diagnos[ie]s[\"']?\s*:?[ \t]*" + _BODY, re.I),
    re.compile(r"\bmay\s+be\s*:?[ \t]*" + _BODY, re.I),
)

RECOMMENDATION_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"recommendations?[\"']?\s*:?[ \t]*" + _BODY, re.I),
    re.compile(r"\bshould\s*:?[ \t]*" + _BODY, re.I),
    re.compile(r"\badvise\s*:?[ \t]*" + _BODY, re.I),
)

# The stated level is the first closed-set token shortly after the label, past
# markdown emphasis and filler such as "is".
URGENCY_LABEL = re.compile(r"urgency(?:[\s_]*level)?", re.I)
URGENCY_TOKEN = re.compile(r"\b(low|medium|high|emergency)\b", re.I)
URGENCY_WINDOW = 40
_LABEL_FILLER = " \t\r\n*_`:=-\"'"
_CLAUSE_END = re.compile(r"[\n.,;]")
RISK_PATTERN = re.compile(r"risk[\s_]*score[\"']?\s*[:=]?\s*[\"']?(\d+(?:\.\d+)?)", re.I)

CONDITION_VOCABULARY = re.compile(
    r"\b(cold|flu|fever|infection|allergy|asthma|diabetes|hypertension|stroke|heart|lung|cancer)\b", re.I
)

EMERGENCY_FLAG_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(
        r"\b(stroke|heart[\s-]attack|cardiac[\s-]arrest|sepsis|shock|unconsciousness|"
        r"severe[\s-]bleeding|breathing[\s-]difficulty)\b",
        re.I,
    ),
    re.compile(r"\b(emergency|critical|life[\s-]threatening|immediate[\s-]attention)\b", re.I),
)

_CONDITION_SPLIT = re.compile(r"[,;]|\s+and\s+|\s+or\s+", re.I)
_RECOMMENDATION_SPLIT = re.compile(r"[,;]|\s+and\s+", re.I)
_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*(.+?)\s*$")
_FRAGMENT_STRIP = " \t\r\n\"'`[]{}:*•-."


# ---------- JSON location ----------
def _escape_newlines_in_json_strings(text: str) -> str:
    """Escape raw newlines that some models leave inside JSON string values."""
    out: List[str] = []
    in_string = False
    escape = False
    for ch in text:
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            elif ch == "\n":
                out.append("\\n")
                continue
            elif ch == "\r":
                out.append("\\r")
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def locate_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Return the first JSON object embedded in `text`, or None.

    Every `{` is tried in turn, so braces in surrounding prose do not hide a
    later object.
    """
    s = (text or "").strip()
    decoder = json.JSONDecoder()
    start = s.find("{")
    first = start
    while start != -1:
        try:
            obj, _end = decoder.raw_decode(s, start)
        except ValueError:
            obj = None
        if isinstance(obj, dict):
            return obj
        start = s.find("{", start + 1)
    if first == -1:
        return None
    end = s.rfind("}")
    if end <= first:
        return None
    try:
        obj = json.loads(_escape_newlines_in_json_strings(s[first:end + 1]))
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


# ---------- small helpers ----------
def _first_key(obj: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in obj:
            return obj[k]
    return None


def _clean_items(items: Iterable[Any], limit: int, min_len: int = 1) -> Tuple[str, ...]:
    """Trim, drop short or non-string fragments, de-duplicate (case-insensitive), cap."""
    seen: set[str] = set()
    out: List[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        cleaned = item.strip(_FRAGMENT_STRIP)
        if len(cleaned) < min_len:
            continue
        key = cleaned.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(cleaned)
        if len(out) >= limit:
            break
    return tuple(out)


def clamp_score(value: float) -> float:
    return float(min(max(value, 0.0), 10.0))


def _coerce_score(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        score = float(value)
    elif isinstance(value, str):
        try:
            score = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(score):
        return None
    return clamp_score(score)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes"}
    return False


# ---------- synthesis ----------
def synthesize_risk_score(urgency: UrgencyLevel, raw_text: str, symptoms: str) -> float:
    """Neutral 5, shifted by urgency and by severity or mitigating words, clamped to [0, 10]."""
    score = BASE_RISK_SCORE + URGENCY_RISK_OFFSET.get(urgency, 0.0)
    texts = (raw_text or "", symptoms or "")
    if any(HIGH_RISK_WORDS.search(t) for t in texts):
        score += 2.0
    if any(LOW_RISK_WORDS.search(t) for t in texts):
        score -= 1.0
    return clamp_score(score)


def extract_emergency_flags(text: str) -> Tuple[str, ...]:
    found: List[str] = []
    for pattern in EMERGENCY_FLAG_PATTERNS:
        found.extend(m.group(1).lower() for m in pattern.finditer(text or ""))
    return _clean_items(found, MAX_EMERGENCY_FLAGS)


def default_record() -> TriageRecord:
    return TriageRecord(
        possible_conditions=(SENTINEL_CONDITION,),
        urgency_level=UrgencyLevel.MEDIUM,
        recommendations=(SENTINEL_RECOMMENDATION,),
        risk_score=BASE_RISK_SCORE,
        emergency_flags=(),
        strategy="default",
    )


# ---------- strategy 1: direct structured parse ----------
def parse_structured(raw_text: str, original_symptoms: str) -> Optional[TriageRecord]:
    obj = locate_json_object(raw_text)
    if obj is None:
        return None

    conditions = _first_key(obj, "possibleConditions", "possible_conditions")
    urgency = _first_key(obj, "urgencyLevel", "urgency_level", "urgency")
    recommendations = _first_key(obj, "recommendations")
    if not isinstance(conditions, list) or not isinstance(recommendations, list) or not isinstance(urgency, str):
        return None

    urgency_level = UrgencyLevel.normalize(urgency)
    risk = _coerce_score(_first_key(obj, "riskScore", "risk_score"))
    if risk is None:
        risk = synthesize_risk_score(urgency_level, raw_text, original_symptoms)
    flags = _first_key(obj, "emergencyFlags", "emergency_flags")
    flags = flags if isinstance(flags, list) else []

    return TriageRecord(
        possible_conditions=_clean_items(conditions, MAX_CONDITIONS) or (SENTINEL_CONDITION,),
        urgency_level=urgency_level,
        recommendations=_clean_items(recommendations, MAX_RECOMMENDATIONS) or (SENTINEL_RECOMMENDATION,),
        risk_score=risk,
        emergency_flags=_clean_items(flags, limit=max(len(flags), 1)),
        strategy="structured",
    )


# ---------- strategy 2: labelled sections ----------
def _bulleted_lines(text: str) -> List[str]:
    """Consecutive bullet or numbered lines directly under a section label."""
    items: List[str] = []
    for line in text.splitlines():
        if not line.strip():
            if items:
                break
            continue
        m = _BULLET.match(line)
        if not m:
            break
        items.append(m.group(1))
    return items


def _section_items(
    text: str,
    patterns: Sequence[re.Pattern],
    splitter: re.Pattern,
    limit: int,
    min_len: int,
) -> Tuple[str, ...]:
    for pattern in patterns:
        m = pattern.search(text)
        if not m:
            continue
        body = m.group(1).strip()
        fragments = splitter.split(body) if body.strip(_FRAGMENT_STRIP) else _bulleted_lines(text[m.end():])
        items = _clean_items(fragments, limit, min_len)
        if items:
            return items
    return ()


def stated_urgency(text: str) -> Optional[UrgencyLevel]:
    """First LOW/MEDIUM/HIGH/EMERGENCY token on the same clause as an urgency label."""
    for label in URGENCY_LABEL.finditer(text):
        window = text[label.end():label.end() + URGENCY_WINDOW].lstrip(_LABEL_FILLER)
        clause = _CLAUSE_END.split(window, 1)[0]
        m = URGENCY_TOKEN.search(clause)
        if m:
            return UrgencyLevel.normalize(m.group(1))
    return None


def _vocabulary_conditions(text: str) -> Tuple[str, ...]:
    return _clean_items((m.group(1).lower() for m in CONDITION_VOCABULARY.finditer(text)), MAX_CONDITIONS)


def parse_labelled_sections(raw_text: str, original_symptoms: str) -> Optional[TriageRecord]:
    text = raw_text or ""
    if not text.strip():
        return None

    conditions = (
        _section_items(text, CONDITION_PATTERNS, _CONDITION_SPLIT, MAX_CONDITIONS, min_len=3)
        or _vocabulary_conditions(text)
        or (SENTINEL_CONDITION,)
    )
    recommendations = (
        _section_items(text, RECOMMENDATION_PATTERNS, _RECOMMENDATION_SPLIT, MAX_RECOMMENDATIONS, min_len=6)
        or (SENTINEL_RECOMMENDATION,)
    )

    urgency_level = stated_urgency(text)
    if urgency_level is None:
        urgency_level = UrgencyLevel.MEDIUM

    m = RISK_PATTERN.search(text)
    risk = _coerce_score(m.group(1)) if m else None
    if risk is None:
        risk = synthesize_risk_score(urgency_level, text, original_symptoms)

    return TriageRecord(
        possible_conditions=conditions,
        urgency_level=urgency_level,
        recommendations=recommendations,
        risk_score=risk,
        emergency_flags=extract_emergency_flags(text),
        strategy="pattern",
    )


Strategy = Callable[[str, str], Optional[TriageRecord]]

STRATEGIES: Tuple[Strategy, ...] = (parse_structured, parse_labelled_sections)


def extract(raw_text: str, original_symptoms: str) -> TriageRecord:
    """Run the strategy chain; fall through to the safe default record."""
    for strategy in STRATEGIES:
        record = strategy(raw_text or "", original_symptoms or "")
        if record is not None:
            logger.debug({"function": "extract", "strategy": record.strategy})
            return record
    logger.info({"function": "extract", "strategy": "default", "chars": len(raw_text or "")})
    return default_record()


def extract_assessment(raw_text: str) -> Optional[EmergencyAssessment]:
    """Parse the emergency-assessment output; None when it carries no usable verdict."""
    obj = locate_json_object(raw_text)
    if obj is None:
        return None
    verdict = _first_key(obj, "isEmergency", "is_emergency")
    if verdict is None:
        return None
    emergency_type = _first_key(obj, "emergencyType", "emergency_type")
    message = obj.get("message")
    return EmergencyAssessment(
        is_emergency=_coerce_bool(verdict),
        emergency_type=emergency_type.strip() if isinstance(emergency_type, str) and emergency_type.strip() else None,
        message=message.strip() if isinstance(message, str) else "",
    )


__all__ = [
    "extract",
    "extract_assessment",
    "parse_structured",
    "parse_labelled_sections",
    "synthesize_risk_score",
    "extract_emergency_flags",
    "default_record",
    "locate_json_object",
    "stated_urgency",
]
