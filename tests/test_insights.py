import asyncio
import json

import pytest

from assessment import insights, llm_client
from assessment.schemas import AttemptResult, SectionScore
from conftest import MODEL_REPLY as REPLY

RESULT = AttemptResult(
    total_items=10,
    correct=6,
    incorrect=3,
    unanswered=1,
    percentage=60.0,
    section_scores=[SectionScore(section="verbal", total_items=10, correct=6, incorrect=3, unanswered=1, score=60.0)],
    strengths=["verbal"],
    improvements=["verbal"],
)


def test_parse_strips_fences_and_caps_lists():
    raw = "```json\n" + json.dumps(REPLY) + "\n```"
    insight = insights.parse_insight(raw, pacing=True)

    assert insight.strengths == ["Vocabulary", "Grammar", "Reading"]
    assert insight.summary == "Solid base. Work on analogies."
    assert insight.pacing_insight == "You finished with time to spare."


def test_parse_drops_pacing_when_not_wanted():
    insight = insights.parse_insight(json.dumps(REPLY), pacing=False)
    assert insight.pacing_insight is None


@pytest.mark.parametrize("raw", [
    "",
    "no json here",
    '{"strengths": ["x"], "improvements": []}',
    '{"strengths": [], "improvements": [], "summary": "ok"}',
    '{"strengths": "verbal", "improvements": [], "summary": "ok"}',
    '{"strengths": ["x"], "improvements": [], "summary": "ok"',
])
def test_parse_rejects_malformed(raw):
    assert insights.parse_insight(raw) is None


def test_pacing_only_for_single_section_practice():
    assert insights.wants_pacing("practice", RESULT) is True
    assert insights.wants_pacing("mock", RESULT) is False
    two = RESULT.model_copy(update={"section_scores": RESULT.section_scores * 2})
    assert insights.wants_pacing("practice", two) is False


def test_prompt_carries_timing_for_practice():
    prompt = insights.build_prompt(RESULT, "practice", time_limit_seconds=600, seconds_used=420)
    assert '"seconds_used": 420' in prompt
    assert "pacing_insight" in prompt
    assert "seconds_used" not in insights.build_prompt(RESULT, "mock", 600, 420)


def test_generate_insight(model):
    insight = asyncio.run(insights.generate_insight(RESULT, "practice", 600, 300))

    assert model["calls"] == 1
    assert insight.improvements == ["Analogies"]
    assert insight.pacing_insight is not None

    enriched = insights.apply_insight(RESULT, insight)
    assert enriched.ai_summary == "Solid base. Work on analogies."
    assert enriched.correct == RESULT.correct
    assert enriched.section_scores == RESULT.section_scores


def test_timeout_returns_none(model):
    model["delay"] = 1
    assert asyncio.run(insights.generate_insight(RESULT, "mock", timeout=0.01)) is None


def test_service_error_returns_none(model):
    model["reply"] = RuntimeError("upstream 500")
    assert asyncio.run(insights.generate_insight(RESULT, "mock")) is None


def test_malformed_reply_returns_none(model):
    model["reply"] = '{"summary": "missing lists"}'
    assert asyncio.run(insights.generate_insight(RESULT, "mock")) is None


def test_skipped_when_not_configured(monkeypatch):
    called = []

    async def fake_call_gpt(prompt, **kwargs):
        called.append(prompt)
        return "{}"

    monkeypatch.setattr(llm_client, "call_gpt", fake_call_gpt)
    assert asyncio.run(insights.generate_insight(RESULT, "mock")) is None
    assert called == []
