"""
Pydantic schemas for the assessment pipeline.

Selection  → question ids stored on the attempt
Grading    → AttemptResult (section scores + heuristic strengths/improvements)
Insights   → NarrativeInsight (optional prose layered on the result)
Next steps → CallToAction
"""

from typing import List, Optional, Literal
from pydantic import BaseModel, Field, field_validator


# ─── Grading output ────────────────────────────────────────────────────────────

class SectionScore(BaseModel):
    """Per-section tally. score is a percentage rounded to 2 decimals."""
    section: str
    total_items: int = 0
    correct: int = 0
    incorrect: int = 0
    unanswered: int = 0
    score: float = 0.0


class AttemptResult(BaseModel):
    """Result block stored on an attempt. All zero/empty while in progress."""
    total_items: int = 0
    correct: int = 0
    incorrect: int = 0
    unanswered: int = 0
    percentage: float = 0.0
    passed: Optional[bool] = None
    passing_score: Optional[int] = None       # threshold expressed in items
    performance_level: Optional[str] = None
    section_scores: List[SectionScore] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    ai_summary: Optional[str] = None
    pacing_insight: Optional[str] = None

    @classmethod
    def empty(cls) -> "AttemptResult":
        return cls()


# ─── Narrative augmentation ───────────────────────────────────────────────────

class NarrativeInsight(BaseModel):
    """Shape the text-generation service must return. Anything else is discarded."""
    strengths: List[str] = Field(..., min_length=1)
    improvements: List[str]
    summary: str = Field(..., min_length=1)
    pacing_insight: Optional[str] = None

    @field_validator("strengths", "improvements")
    @classmethod
    def _clean_items(cls, v: List[str]) -> List[str]:
        items = [s.strip() for s in v if isinstance(s, str) and s.strip()]
        if len(items) != len(v):
            raise ValueError("items must be non-empty strings")
        return items


# ─── Recommendations ──────────────────────────────────────────────────────────

CtaType = Literal[
    "take_section_practice",
    "retake_full_mock",
    "review_answers",
    "retake_section",
    "try_full_mock",
    "go_to_dashboard",
    "retake_demo",
]


class CtaTarget(BaseModel):
    """Summary of the exam definition a CTA points at."""
    id: int
    title: str
    access: str = "free"
    section_display_name: Optional[str] = None


class CallToAction(BaseModel):
    """One recommended next step shown after grading."""
    type: CtaType
    label: str
    target_exam_id: Optional[int] = None
    section: Optional[str] = None
    is_highest_impact: bool = False
    priority: Literal["primary", "secondary", "optional"]
    target: Optional[CtaTarget] = None
