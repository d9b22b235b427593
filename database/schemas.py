"""
Pydantic schemas for catalog records
Every Question / ExamDefinition shape is checked here before it reaches the engine
"""

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, List, Literal


def _norm(value: str) -> str:
    return value.strip().lower()


# ==========================================
# QUESTION SCHEMAS
# ==========================================

class QuestionRecord(BaseModel):
    """Catalog question as loaded from content files or read from the store"""
    id: Optional[int] = Field(None, gt=0, description="Stable question ID (assigned by the store when omitted)")
    exam_family: str = Field(..., min_length=1, max_length=50)
    exam_level: str = Field(..., min_length=1, max_length=50)
    section: str = Field(..., min_length=1, max_length=100)
    module: str = ""
    topic: str = ""
    difficulty: Literal["easy", "medium", "hard"]
    question_text: str = Field(..., min_length=1)
    choice_a: str = Field(..., min_length=1)
    choice_b: str = Field(..., min_length=1)
    choice_c: str = Field(..., min_length=1)
    choice_d: str = Field(..., min_length=1)
    correct_answer: Literal["A", "B", "C", "D"]
    explanation_correct: str = ""
    explanation_wrong: str = ""
    tip: str = ""
    status: Literal["approved", "pending", "rejected"] = "approved"

    model_config = ConfigDict(from_attributes=True)

    @field_validator("exam_family", "exam_level", "section", mode="before")
    @classmethod
    def _lowercase_tags(cls, v):
        return _norm(v) if isinstance(v, str) else v

    @field_validator("difficulty", "status", mode="before")
    @classmethod
    def _lowercase_enums(cls, v):
        return _norm(v) if isinstance(v, str) else v

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _uppercase_letter(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


# ==========================================
# EXAM DEFINITION SCHEMAS
# ==========================================

class SectionTarget(BaseModel):
    """How many items one section contributes to an exam"""
    section: str = Field(..., min_length=1)
    count: int = Field(..., ge=0)

    @field_validator("section", mode="before")
    @classmethod
    def _lowercase_section(cls, v):
        return _norm(v) if isinstance(v, str) else v


class DifficultyDistribution(BaseModel):
    """Difficulty split in percent"""
    easy: float = Field(30, ge=0, le=100)
    medium: float = Field(50, ge=0, le=100)
    hard: float = Field(20, ge=0, le=100)

    @model_validator(mode="after")
    def _sums_to_hundred(self):
        total = self.easy + self.medium + self.hard
        if abs(total - 100) > 0.01:
            raise ValueError(f"difficulty percentages must sum to 100 (got {total:g})")
        return self


class ExamConfig(BaseModel):
    """Assembly configuration of an exam definition"""
    variant: Literal["dynamic", "fixed"] = "dynamic"
    exam_family: str = "cse"
    exam_levels: List[str] = Field(default_factory=list)
    total_items: int = Field(..., ge=0)
    time_limit_seconds: int = Field(0, ge=0)
    passing_threshold: Optional[float] = Field(None, ge=0, le=100)  # 0 or None = no pass/fail
    section_distribution: List[SectionTarget] = Field(default_factory=list)
    difficulty_distribution: DifficultyDistribution = Field(default_factory=DifficultyDistribution)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("exam_family", mode="before")
    @classmethod
    def _lowercase_family(cls, v):
        return _norm(v) if isinstance(v, str) else v

    @field_validator("exam_levels", mode="before")
    @classmethod
    def _lowercase_levels(cls, v):
        if isinstance(v, list):
            return [_norm(x) if isinstance(x, str) else x for x in v]
        return v


class ExamDefinitionRecord(ExamConfig):
    """Exam definition as loaded from content files"""
    id: Optional[int] = Field(None, gt=0)
    slug: str = Field(..., min_length=1, max_length=255)
    type: Literal["mock", "practice", "demo"]
    access: Literal["free", "premium"] = "free"
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: Literal["draft", "published", "archived"] = "published"
    display_order: int = 0

    @field_validator("slug", mode="before")
    @classmethod
    def _strip_slug(cls, v):
        return v.strip() if isinstance(v, str) else v


class ExamDefinitionResponse(BaseModel):
    """Public catalog view of an exam definition"""
    id: int
    slug: str
    type: str
    access: str
    title: str
    description: Optional[str] = None
    variant: str
    total_items: int
    time_limit_seconds: int
    passing_threshold: Optional[float] = None
    section_distribution: List[SectionTarget]

    model_config = ConfigDict(from_attributes=True)
