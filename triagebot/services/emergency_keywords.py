"""
Lexical emergency matcher.

Scans the raw narrative for language-specific emergency phrases. Pure and
synchronous; an unsupported language or empty text simply yields no match,
since a missing match must never block triage.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Tuple

import yaml

logger = logging.getLogger("triagebot")

KEYWORDS_PATH = Path(__file__).resolve().parents[1] / "config" / "emergency_keywords.yaml"

DEFAULT_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "EN": (
        "chest pain", "heart attack", "stroke", "unconscious", "bleeding",
        "difficulty breathing", "severe injury", "emergency", "urgent",
        "can't breathe", "fainting", "seizure",
    ),
    "BN": (
        "বুকে ব্যথা", "হার্ট অ্যাটাক", "স্ট্রোক", "অজ্ঞান", "রক্তক্ষরণ",
        "শ্বাসকষ্ট", "গুরুতর আঘাত", "জরুরি", "শ্বাস নিতে পারছি না",
        "চেতনা হারানো", "খিঁচুনি",
    ),
}


@lru_cache(maxsize=1)
def load_keywords() -> Dict[str, Tuple[str, ...]]:
    """Return {language: phrases}, read once from the bundled YAML file."""
    try:
        with open(KEYWORDS_PATH, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        out: Dict[str, Tuple[str, ...]] = {}
        for lang, phrases in data.items():
            cleaned = tuple(str(p).strip().lower() for p in (phrases or []) if str(p).strip())
            if cleaned:
                out[str(lang).upper()] = cleaned
        if not out:
            raise ValueError("no keyword lists found")
        return out
    except (OSError, ValueError, AttributeError, yaml.YAMLError) as e:
        logger.warning({"function": "load_keywords", "status": "built-in default", "error": str(e)})
        return {lang: tuple(p.lower() for p in phrases) for lang, phrases in DEFAULT_KEYWORDS.items()}


def _language_key(language: object) -> str:
    value = getattr(language, "value", language)
    return str(value or "").strip().upper()


def matched_keywords(text: str, language: object) -> List[str]:
    """All emergency phrases found in `text`, in lexicon order."""
    phrases = load_keywords().get(_language_key(language))
    if not phrases or not text:
        return []
    low = text.lower()
    return [p for p in phrases if p in low]


def contains_emergency_signal(text: str, language: object) -> bool:
    return bool(matched_keywords(text, language))


__all__ = ["contains_emergency_signal", "matched_keywords", "load_keywords"]
