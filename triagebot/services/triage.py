"""
Triage engine: fan out to the collaborators, settle every vote within one
deadline, then arbitrate once.

Flow per request:
1. Validate the narrative (InputError before any collaborator call).
2. Symptom analysis, emergency assessment and the lexical match run
   concurrently.
3. The analysis text goes through the extractor; the assessment text is
   parsed for a generative emergency verdict.
4. The validating classifier votes on urgency, emergency status and (when
   the extracted recommendations are generic) recommendations.
5. Arbitration and assembly run on whatever settled. A collaborator that
   failed, timed out or was cut off by the deadline is simply an absent vote.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from triagebot.config.settings import Settings, get_settings
from triagebot.schemas.triage import (
    EmergencyAssessment,
    FinalTriageOutcome,
    Language,
    SymptomNarrative,
    TriageRecord,
    TriageSignals,
    UrgencyLevel,
)
from triagebot.services.arbitration import arbitrate
from triagebot.services.assembler import assemble
from triagebot.services.emergency_keywords import matched_keywords
from triagebot.services.extraction import extract, extract_assessment
from triagebot.services.gemini import AnalyzerFailure, GeminiClient, GenerativeAnalyzer
from triagebot.services.zero_shot import ValidatingClassifier, ZeroShotClassifier

logger = logging.getLogger("triagebot")

AI_NOT_CONFIGURED = "AI_NOT_CONFIGURED"
CLASSIFIER_UNAVAILABLE = "CLASSIFIER_UNAVAILABLE"
TRIAGE_DEADLINE = "TRIAGE_DEADLINE"


@dataclass
class _Votes:
    """Per-request accumulator. Whatever is set when the deadline hits is used."""

    keywords: Tuple[str, ...] = ()
    analysis_text: str = ""
    assessment_text: str = ""
    validator_urgency: Optional[UrgencyLevel] = None
    validator_emergency: Optional[bool] = None
    validator_recommendations: Optional[Tuple[str, ...]] = None
    failures: List[str] = field(default_factory=list)


class TriageEngine:
    def __init__(
        self,
        analyzer: Optional[GenerativeAnalyzer],
        validator: Optional[ValidatingClassifier],
        deadline_s: float = 45.0,
    ) -> None:
        self.analyzer = analyzer
        self.validator = validator
        self.deadline_s = deadline_s

    # ---------- collaborator stage ----------
    async def _lexical(self, narrative: SymptomNarrative, votes: _Votes) -> None:
        votes.keywords = tuple(matched_keywords(narrative.symptoms, narrative.language))

    async def _generate(self, operation: str, narrative: SymptomNarrative, votes: _Votes) -> None:
        if self.analyzer is None:
            return
        call = self.analyzer.analyze if operation == "analysis" else self.analyzer.assess_emergency
        result = await call(narrative.symptoms, narrative.language.value)
        if isinstance(result, AnalyzerFailure):
            votes.failures.append(result.code)
        elif operation == "analysis":
            votes.analysis_text = result
        else:
            votes.assessment_text = result

    async def _validate(self, narrative: SymptomNarrative, votes: _Votes) -> None:
        validator = self.validator
        symptoms = narrative.symptoms

        async def urgency():
            votes.validator_urgency = await validator.classify_urgency(f"{symptoms} {votes.analysis_text}".strip())

        async def emergency():
            votes.validator_emergency = await validator.validate_emergency(symptoms, votes.assessment_text)

        async def recommendations():
            votes.validator_recommendations = await validator.classify_recommendations(
                votes.analysis_text or symptoms
            )

        calls = [urgency(), emergency()]
        if extract(votes.analysis_text, symptoms).has_generic_recommendations():
            calls.append(recommendations())
        await asyncio.gather(*calls)

        if votes.validator_urgency is None or votes.validator_emergency is None:
            votes.failures.append(CLASSIFIER_UNAVAILABLE)

    async def _collect(self, narrative: SymptomNarrative, votes: _Votes) -> None:
        if self.analyzer is None:
            votes.failures.append(AI_NOT_CONFIGURED)
        await asyncio.gather(
            self._generate("analysis", narrative, votes),
            self._generate("assessment", narrative, votes),
            self._lexical(narrative, votes),
        )
        if self.validator is None:
            votes.failures.append(CLASSIFIER_UNAVAILABLE)
        else:
            await self._validate(narrative, votes)

    # ---------- public API ----------
    async def triage(self, symptoms: object, language: object = Language.EN, context: Optional[str] = None) -> FinalTriageOutcome:
        narrative = SymptomNarrative.parse(symptoms, language, context)
        started = time.perf_counter()

        votes = _Votes()
        try:
            await asyncio.wait_for(self._collect(narrative, votes), timeout=self.deadline_s)
        except asyncio.TimeoutError:
            votes.failures.append(TRIAGE_DEADLINE)

        # the lexical match is pure; never lose it to the deadline
        if not votes.keywords:
            votes.keywords = tuple(matched_keywords(narrative.symptoms, narrative.language))

        record: TriageRecord = extract(votes.analysis_text, narrative.symptoms)
        assessment: Optional[EmergencyAssessment] = (
            extract_assessment(votes.assessment_text) if votes.assessment_text else None
        )
        generative_emergency = assessment.is_emergency if assessment is not None else None

        arbitration = arbitrate(
            lexical_signal=bool(votes.keywords),
            extractor_record=record,
            validator_urgency=votes.validator_urgency,
            validator_emergency=votes.validator_emergency,
            generative_emergency=generative_emergency,
            validator_recommendations=votes.validator_recommendations,
        )
        signals = TriageSignals(
            lexical=bool(votes.keywords),
            lexical_keywords=votes.keywords,
            generative_emergency=generative_emergency,
            validator_urgency=votes.validator_urgency,
            validator_emergency=votes.validator_emergency,
            failures=tuple(dict.fromkeys(votes.failures)),
        )
        outcome = assemble(arbitration, narrative, assessment, signals)

        logger.info({
            "function": "triage",
            "language": narrative.language.value,
            "urgency": outcome.urgency_level.value,
            "is_emergency": outcome.is_emergency,
            "emergency_sources": list(arbitration.emergency_sources),
            "strategy": record.strategy,
            "failures": list(signals.failures),
            "elapsed_ms": int((time.perf_counter() - started) * 1000),
        })
        return outcome

    async def aclose(self) -> None:
        if self.analyzer is not None:
            await self.analyzer.client.aclose()


def build_engine(settings: Optional[Settings] = None) -> TriageEngine:
    """Construct the collaborators once; the engine is shared by all requests."""
    settings = settings or get_settings()

    analyzer = None
    if settings.generation_configured:
        client = GeminiClient(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout_s=settings.gemini_timeout_s,
        )
        analyzer = GenerativeAnalyzer(client, timeout_s=settings.gemini_timeout_s)
    else:
        logger.warning({"function": "build_engine", "generation": "disabled", "reason": "GEMINI_API_KEY not set"})

    validator = None
    if settings.zero_shot_enabled:
        classifier = ZeroShotClassifier(settings.zero_shot_model, enabled=True)
        validator = ValidatingClassifier(classifier, timeout_s=settings.classifier_timeout_s)
    else:
        logger.warning({"function": "build_engine", "zero_shot": "disabled"})

    return TriageEngine(analyzer, validator, deadline_s=settings.triage_deadline_s)


__all__ = ["TriageEngine", "build_engine"]
