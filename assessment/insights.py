"""
Step 3: Insight Augmenter (best-effort)

Asks the text-generation service for coaching prose on top of a graded
result. Runs under a hard timeout; any failure, missing configuration or
malformed response yields None and the heuristic result stands.
"""

import asyncio
import json
import logging
import os
import re
from typing import Optional

from pydantic import ValidationError

from assessment import llm_client
from assessment.schemas import AttemptResult, NarrativeInsight

log = logging.getLogger("assessment.pipeline")

INSIGHTS_ENABLED = os.getenv("INSIGHTS_ENABLED", "true").lower() in ("1", "true", "yes")
INSIGHT_TIMEOUT_SECONDS = float(os.getenv("INSIGHT_TIMEOUT_SECONDS", "8"))


INSIGHT_PROMPT = """You are an exam coach. Analyze the user's test performance.

Respond with JSON ONLY, no markdown, no extra keys:
{{
  "strengths": ["<short skill or section name>", ...],
  "improvements": ["<short skill or section name>", ...],
  "summary": "<2-3 encouraging, actionable sentences>"{pacing_key}
}}

Guidelines:
- Strengths: 2-3 short, specific skill or section names.
- Improvements: 3-4 short, specific skill or section names.
{pacing_rule}
Performance data:
{data}"""

PACING_KEY = ',\n  "pacing_insight": "<one sentence on time management>"'
PACING_RULE = "- Pacing insight: one sentence comparing time used against the time limit.\n"


def wants_pacing(exam_type: str, result: AttemptResult) -> bool:
    """Pacing prose only makes sense for single-section practice exams."""
    return exam_type == "practice" and len(result.section_scores) == 1


def build_prompt(
    result: AttemptResult,
    exam_type: str,
    time_limit_seconds: int = 0,
    seconds_used: Optional[int] = None,
) -> str:
    data = {
        "exam_type": exam_type,
        "total_items": result.total_items,
        "correct": result.correct,
        "percentage": result.percentage,
        "sections": [s.model_dump() for s in result.section_scores],
    }
    pacing = wants_pacing(exam_type, result)
    if pacing:
        data["time_limit_seconds"] = time_limit_seconds
        data["seconds_used"] = seconds_used
    return INSIGHT_PROMPT.format(
        pacing_key=PACING_KEY if pacing else "",
        pacing_rule=PACING_RULE if pacing else "",
        data=json.dumps(data),
    )


def parse_insight(raw: str, pacing: bool = False) -> Optional[NarrativeInsight]:
    """Extract and validate the JSON object from a model reply."""
    raw = (raw or "").strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw, flags=re.MULTILINE)
    raw = re.sub(r"\s*```$", "", raw, flags=re.MULTILINE)
    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start == -1 or end <= start:
        return None
    try:
        insight = NarrativeInsight.model_validate(json.loads(raw[start:end]))
    except (json.JSONDecodeError, ValidationError) as e:
        log.warning("Discarding malformed insight response: %s", str(e)[:200])
        return None

    insight.strengths = insight.strengths[:3]
    insight.improvements = insight.improvements[:4]
    if not pacing:
        insight.pacing_insight = None
    return insight


async def generate_insight(
    result: AttemptResult,
    exam_type: str,
    time_limit_seconds: int = 0,
    seconds_used: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Optional[NarrativeInsight]:
    """
    Request narrative augmentation for a graded result.

    Returns:
        Validated NarrativeInsight, or None when disabled, unconfigured,
        timed out, failed or malformed
    """
    if not INSIGHTS_ENABLED or not llm_client.is_configured():
        log.debug("Insight augmentation skipped: not configured")
        return None

    prompt = build_prompt(result, exam_type, time_limit_seconds, seconds_used)
    try:
        raw = await asyncio.wait_for(
            llm_client.call_gpt(prompt, temperature=0.3, max_tokens=600),
            timeout=timeout if timeout is not None else INSIGHT_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        log.warning("Insight augmentation timed out")
        return None
    except Exception as e:
        log.warning("Insight augmentation failed: %s", e)
        return None

    return parse_insight(raw, pacing=wants_pacing(exam_type, result))


def apply_insight(result: AttemptResult, insight: NarrativeInsight) -> AttemptResult:
    """Layer narrative fields over the heuristic result (counts untouched)."""
    return result.model_copy(update={
        "strengths": insight.strengths,
        "improvements": insight.improvements,
        "ai_summary": insight.summary,
        "pacing_insight": insight.pacing_insight,
    })
