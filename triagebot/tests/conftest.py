import asyncio
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Tests never reach the network or download models
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = ""
os.environ["ZERO_SHOT_ENABLED"] = "false"

# Ensure the project root is on sys.path so `import triagebot` works when running
# pytest from the repository root.
ROOT_DIR = Path(__file__).resolve().parents[2]  # repository root
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from triagebot.app import app
from triagebot.db.session import Base, get_db
from triagebot.services.gemini import AnalyzerFailure
from triagebot.services.triage import TriageEngine
from triagebot.services.zero_shot import (
    EMERGENCY_LABEL,
    NON_EMERGENCY_LABEL,
    URGENCY_LABELS,
    ValidatingClassifier,
    ZeroShotClassifier,
)


# In-memory SQLite shared across connections
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def create_schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = _override_get_db

import triagebot.db.session as session_mod
session_mod.engine = engine
session_mod.SessionLocal = TestingSessionLocal
import triagebot.models as models_mod
models_mod.engine = engine


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---------- fake collaborators ----------
class FakeAnalyzer:
    """Stands in for GenerativeAnalyzer. None means the call fails."""

    def __init__(self, analysis=None, assessment=None, delay_s=0.0):
        self.analysis = analysis
        self.assessment = assessment
        self.delay_s = delay_s
        self.calls = []

    async def _reply(self, kind, text):
        self.calls.append(kind)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if text is None:
            return AnalyzerFailure("AI_TRANSPORT_ERROR", "service down")
        return text

    async def analyze(self, symptoms, language):
        return await self._reply("analyze", self.analysis)

    async def assess_emergency(self, symptoms, language):
        return await self._reply("assess", self.assessment)


def make_pipeline(urgency=None, emergency=None, recommendation_scores=None):
    """Deterministic zero-shot pipeline. A missing top label makes that call fail."""

    def pipe(text, candidate_labels):
        labels = list(candidate_labels)
        if set(labels) == set(URGENCY_LABELS):
            top = urgency
        elif set(labels) == {EMERGENCY_LABEL, NON_EMERGENCY_LABEL}:
            top = emergency
        else:
            scores = recommendation_scores or {}
            ranked = sorted(labels, key=lambda l: scores.get(l, 0.0), reverse=True)
            return {"labels": ranked, "scores": [scores.get(l, 0.0) for l in ranked]}
        if top is None:
            raise RuntimeError("classifier offline")
        rest = [l for l in labels if l != top]
        return {"labels": [top] + rest, "scores": [0.9] + [0.1 / len(rest)] * len(rest)}

    return pipe


def make_validator(**votes):
    classifier = ZeroShotClassifier("mock-mnli", enabled=True, loader=lambda _name: make_pipeline(**votes))
    return ValidatingClassifier(classifier, timeout_s=5.0)


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer


@pytest.fixture
def validator_factory():
    return make_validator


@pytest.fixture
def offline_engine():
    """Both collaborators unavailable."""
    return TriageEngine(analyzer=None, validator=None, deadline_s=5.0)


@pytest.fixture
def client(offline_engine):
    app.state.triage_engine = offline_engine
    yield TestClient(app)
    app.state.triage_engine = None
