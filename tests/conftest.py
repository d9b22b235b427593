import asyncio
import json
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("TELEMETRY_REDIS_URL", None)
os.environ.pop("PROMO_ENTITLEMENTS_FILE", None)

import pytest
from fastapi.testclient import TestClient

from assessment import insights, llm_client
from auth.security import create_access_token
from database.database import Base, SessionLocal, engine
from database import crud
from main import app
from seed_catalog import load_catalog, validate_catalog
from services import entitlements

SECTIONS = ("verbal", "numerical")


def question_records(per_difficulty=4):
    """Approved professional-level questions, every key is 'A'."""
    out = []
    for section in SECTIONS:
        for difficulty in ("easy", "medium", "hard"):
            for i in range(per_difficulty):
                out.append({
                    "exam_family": "cse",
                    "exam_level": "professional",
                    "section": section,
                    "difficulty": difficulty,
                    "question_text": f"{section} {difficulty} question {i}",
                    "choice_a": "right",
                    "choice_b": "wrong",
                    "choice_c": "wrong",
                    "choice_d": "wrong",
                    "correct_answer": "A",
                    "explanation_correct": "Because A.",
                    "explanation_wrong": "Not B, C or D.",
                    "tip": "Read carefully.",
                })
    return out


def definition_records():
    return [
        {
            "slug": "cse-pro-mock",
            "type": "mock",
            "title": "CSE Professional Mock",
            "display_order": 1,
            "exam_levels": ["professional"],
            "total_items": 10,
            "time_limit_seconds": 3600,
            "passing_threshold": 80,
            "section_distribution": [
                {"section": "verbal", "count": 5},
                {"section": "numerical", "count": 5},
            ],
            "difficulty_distribution": {"easy": 30, "medium": 50, "hard": 20},
        },
        {
            "slug": "verbal-practice",
            "type": "practice",
            "title": "Verbal Practice",
            "display_order": 2,
            "variant": "fixed",
            "exam_levels": ["professional"],
            "total_items": 4,
            "time_limit_seconds": 600,
            "section_distribution": [{"section": "verbal", "count": 4}],
        },
        {
            "slug": "numerical-practice",
            "type": "practice",
            "title": "Numerical Practice",
            "display_order": 3,
            "exam_levels": ["both"],
            "total_items": 4,
            "section_distribution": [{"section": "numerical", "count": 4}],
        },
        {
            "slug": "cse-demo",
            "type": "demo",
            "title": "CSE Demo",
            "display_order": 4,
            "exam_levels": ["professional"],
            "total_items": 4,
            "section_distribution": [
                {"section": "verbal", "count": 2},
                {"section": "numerical", "count": 2},
            ],
        },
        {
            "slug": "premium-mock",
            "type": "mock",
            "access": "premium",
            "title": "Premium Mock",
            "display_order": 5,
            "exam_levels": ["professional"],
            "total_items": 4,
            "section_distribution": [{"section": "verbal", "count": 4}],
        },
    ]


@pytest.fixture(autouse=True)
def _database(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    entitlements.promo_user_ids.cache_clear()
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    entitlements.promo_user_ids.cache_clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog():
    """Seed the catalog and return exam definition IDs by slug."""
    questions, definitions, errors = validate_catalog({
        "questions": question_records(),
        "exam_definitions": definition_records(),
    })
    assert errors == []
    session = SessionLocal()
    try:
        load_catalog(session, questions, definitions)
        return {d.slug: d.id for d in crud.list_exam_definitions(session)}
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


MODEL_REPLY = {
    "strengths": ["Vocabulary", "Grammar", "Reading", "Spelling"],
    "improvements": ["Analogies"],
    "summary": "Solid base. Work on analogies.",
    "pacing_insight": "You finished with time to spare.",
}


@pytest.fixture
def model(monkeypatch):
    """Configured model client whose reply the test controls."""
    state = {"reply": json.dumps(MODEL_REPLY), "delay": 0, "calls": 0}

    async def fake_call_gpt(prompt, **kwargs):
        state["calls"] += 1
        state["prompt"] = prompt
        if state["delay"]:
            await asyncio.sleep(state["delay"])
        if isinstance(state["reply"], Exception):
            raise state["reply"]
        return state["reply"]

    monkeypatch.setattr(insights, "INSIGHTS_ENABLED", True)
    monkeypatch.setattr(llm_client, "is_configured", lambda: True)
    monkeypatch.setattr(llm_client, "call_gpt", fake_call_gpt)
    return state


def auth_headers(user_id="user-1"):
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}
