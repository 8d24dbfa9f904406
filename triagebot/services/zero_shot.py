"""
Classification boundary: zero-shot text classification with a lazily loaded
Hugging Face pipeline, and the validating classifier built on top of it.

Behavior:
- The transformers pipeline is created on first use and then reused for the
  process lifetime. A failed load is remembered; the classifier then stays
  unavailable rather than retrying on every request.
- `ValidatingClassifier` turns every failure into an absent vote (None). It
  never answers "non-emergency" on behalf of a classifier that did not run.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from triagebot.schemas.triage import UrgencyLevel
from triagebot.utils.exceptions import ClassifierUnavailable

logger = logging.getLogger("triagebot")

DEFAULT_ZERO_SHOT_MODEL = "facebook/bart-large-mnli"

URGENCY_LABELS: Dict[str, UrgencyLevel] = {
    "low urgency medical condition": UrgencyLevel.LOW,
    "medium urgency medical condition": UrgencyLevel.MEDIUM,
    "high urgency medical condition": UrgencyLevel.HIGH,
    "emergency medical situation": UrgencyLevel.EMERGENCY,
}

EMERGENCY_LABEL = "emergency medical situation requiring immediate attention"
NON_EMERGENCY_LABEL = "non-emergency medical condition"

RECOMMENDATION_LABELS: Dict[str, str] = {
    "rest and monitor symptoms": "Rest and monitor your symptoms",
    "seek immediate medical attention": "Seek immediate medical attention",
    "consult healthcare provider": "Consult a healthcare provider",
    "use over-the-counter medications": "Consider over-the-counter medications",
    "lifestyle changes": "Make appropriate lifestyle changes",
    "preventive measures": "Take preventive measures",
}
RECOMMENDATION_CONFIDENCE_FLOOR = 0.3
MAX_RECOMMENDATION_VOTES = 3

Ranked = List[Tuple[str, float]]
PipelineLoader = Callable[[str], Callable[..., Any]]


def _load_transformers_pipeline(model_name: str) -> Callable[..., Any]:
    from transformers import pipeline

    return pipeline("zero-shot-classification", model=model_name, device=-1)


def _ranked(result: Any) -> Ranked:
    """Normalize pipeline output to [(label, score), ...], best first."""
    pairs: Ranked = []
    if isinstance(result, dict):
        labels = result.get("labels") or []
        scores = result.get("scores") or []
        pairs = [(str(l), float(s)) for l, s in zip(labels, scores)]
    elif isinstance(result, list):
        for item in result:
            if isinstance(item, dict) and "label" in item:
                pairs.append((str(item["label"]), float(item.get("score", 0.0))))
    return sorted(pairs, key=lambda p: p[1], reverse=True)


class ZeroShotClassifier:
    """Process-wide handle to the zero-shot pipeline."""

    def __init__(
        self,
        model_name: str = DEFAULT_ZERO_SHOT_MODEL,
        enabled: bool = True,
        loader: Optional[PipelineLoader] = None,
    ) -> None:
        self.model_name = model_name
        self.enabled = enabled
        self._loader = loader or _load_transformers_pipeline
        self._lock = threading.Lock()
        # Fast tokenizers are not reentrant; one inference at a time per pipeline.
        self._infer_lock = threading.Lock()
        self._pipe: Optional[Callable[..., Any]] = None
        self._attempted = False
        self.warning: Optional[str] = None

    def _get_pipeline(self) -> Optional[Callable[..., Any]]:
        with self._lock:
            if self._attempted:
                return self._pipe
            self._attempted = True
            if not self.enabled:
                self.warning = "zero-shot classification disabled"
                return None
            try:
                self._pipe = self._loader(self.model_name)
                logger.info({"function": "zero_shot_load", "model": self.model_name, "status": "ready"})
            except Exception as exc:  # runtime environment dependent
                self.warning = f"{exc.__class__.__name__}: {exc}"
                logger.warning({"function": "zero_shot_load", "model": self.model_name, "error": self.warning})
            return self._pipe

    def rank(self, text: str, labels: Sequence[str]) -> Ranked:
        pipe = self._get_pipeline()
        if pipe is None:
            raise ClassifierUnavailable("Zero-shot classifier unavailable", details=self.warning)
        try:
            with self._infer_lock:
                result = pipe(text, candidate_labels=list(labels))
        except Exception as exc:
            raise ClassifierUnavailable(f"Zero-shot inference failed: {exc}") from exc
        ranked = _ranked(result)
        if not ranked:
            raise ClassifierUnavailable("Zero-shot classifier returned no labels")
        return ranked


class ValidatingClassifier:
    """Second opinion on urgency, emergency status and recommendations."""

    def __init__(self, classifier: Optional[ZeroShotClassifier], timeout_s: float = 15.0) -> None:
        self.classifier = classifier
        self.timeout_s = timeout_s

    @property
    def available(self) -> bool:
        return self.classifier is not None and self.classifier.enabled

    async def _rank(self, operation: str, text: str, labels: Sequence[str]) -> Optional[Ranked]:
        if self.classifier is None:
            return None
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.classifier.rank, text, labels),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning({"function": operation, "status": "timeout", "timeout_s": self.timeout_s})
        except ClassifierUnavailable as e:
            logger.warning({"function": operation, "status": "unavailable", "detail": e.message})
        except Exception as e:
            logger.error({"function": operation, "status": "error", "detail": f"{e.__class__.__name__}: {e}"})
        return None

    async def classify_urgency(self, text: str) -> Optional[UrgencyLevel]:
        ranked = await self._rank("classify_urgency", text, list(URGENCY_LABELS))
        if not ranked:
            return None
        return URGENCY_LABELS.get(ranked[0][0])

    async def validate_emergency(self, symptoms: str, model_output: str) -> Optional[bool]:
        # No confidence floor here: the top label alone decides.
        combined = f"{symptoms} {model_output or ''}".strip()
        ranked = await self._rank("validate_emergency", combined, [EMERGENCY_LABEL, NON_EMERGENCY_LABEL])
        if not ranked:
            return None
        return ranked[0][0] == EMERGENCY_LABEL

    async def classify_recommendations(self, text: str) -> Optional[Tuple[str, ...]]:
        ranked = await self._rank("classify_recommendations", text, list(RECOMMENDATION_LABELS))
        if not ranked:
            return None
        picked = tuple(
            RECOMMENDATION_LABELS.get(label, label)
            for label, score in ranked
            if score > RECOMMENDATION_CONFIDENCE_FLOOR
        )[:MAX_RECOMMENDATION_VOTES]
        return picked or None


__all__ = [
    "ZeroShotClassifier",
    "ValidatingClassifier",
    "URGENCY_LABELS",
    "EMERGENCY_LABEL",
    "NON_EMERGENCY_LABEL",
    "RECOMMENDATION_LABELS",
]
