"""
SQLAlchemy models for the exam attempt engine

Question and ExamDefinition rows are the read-only catalog, maintained by the
content side. Attempt and AttemptAnswer rows are owned by the engine.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, DateTime, Text, Float, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from database.database import Base


class AttemptStatus(str, enum.Enum):
    """Attempt lifecycle states. Only IN_PROGRESS is non-terminal."""
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    TIMED_OUT = "timed_out"


TERMINAL_STATUSES = (AttemptStatus.SUBMITTED.value, AttemptStatus.TIMED_OUT.value)


# ==========================================
# CATALOG: QUESTIONS
# ==========================================

class Question(Base):
    """
    Multiple-choice catalog item.
    Tagged with exam family, level, section and difficulty for exam assembly.
    """
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    exam_family = Column(String(50), nullable=False)   # e.g. "cse"
    exam_level = Column(String(50), nullable=False)    # professional, subprofessional, both
    section = Column(String(100), nullable=False)      # verbal, numerical, ...
    module = Column(String(255), nullable=False, default="")
    topic = Column(String(255), nullable=False, default="")
    difficulty = Column(String(10), nullable=False)    # easy, medium, hard
    question_text = Column(Text, nullable=False)
    choice_a = Column(Text, nullable=False)
    choice_b = Column(Text, nullable=False)
    choice_c = Column(Text, nullable=False)
    choice_d = Column(Text, nullable=False)
    correct_answer = Column(String(1), nullable=False)  # "A", "B", "C", "D"
    explanation_correct = Column(Text, nullable=False, default="")
    explanation_wrong = Column(Text, nullable=False, default="")
    tip = Column(Text, nullable=False, default="")
    status = Column(String(10), nullable=False, default="approved")  # approved, pending, rejected
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_questions_assembly", "status", "exam_family", "exam_level", "section", "difficulty"),
    )

    def __repr__(self):
        return f"<Question(id={self.id}, section='{self.section}', difficulty='{self.difficulty}')>"


# ==========================================
# CATALOG: EXAM DEFINITIONS
# ==========================================

class ExamDefinition(Base):
    """
    One exam product (mock, practice or demo) and how its questions are assembled.
    variant: 'dynamic' = new questions each attempt, 'fixed' = same set on reattempt.
    """
    __tablename__ = "exam_definitions"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    type = Column(String(10), nullable=False, index=True)          # mock, practice, demo
    access = Column(String(10), nullable=False, default="free")    # free, premium
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(10), nullable=False, default="published", index=True)  # draft, published, archived
    display_order = Column(Integer, nullable=False, default=0)

    # Assembly configuration
    variant = Column(String(10), nullable=False, default="dynamic")
    exam_family = Column(String(50), nullable=False, default="cse")
    exam_levels = Column(JSON, nullable=False, default=list)            # ["professional", "both"]
    total_items = Column(Integer, nullable=False)
    time_limit_seconds = Column(Integer, nullable=False, default=0)     # 0 = untimed
    passing_threshold = Column(Float, nullable=True)                    # percentage, null = no pass/fail
    section_distribution = Column(JSON, nullable=False, default=list)   # [{"section": "verbal", "count": 45}]
    difficulty_distribution = Column(JSON, nullable=False)              # {"easy": 30, "medium": 50, "hard": 20}

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<ExamDefinition(id={self.id}, slug='{self.slug}', type='{self.type}')>"


# ==========================================
# ENGINE: ATTEMPTS
# ==========================================

class Attempt(Base):
    """
    One user's run through one exam definition. Exactly one row per
    (user_id, exam_definition_id); a reattempt resets this row in place.
    """
    __tablename__ = "attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    exam_definition_id = Column(Integer, ForeignKey("exam_definitions.id", ondelete="CASCADE"), nullable=False, index=True)
    question_ids = Column(JSON, nullable=False, default=list)  # delivery order
    status = Column(String(12), nullable=False, default=AttemptStatus.IN_PROGRESS.value, index=True)
    current_index = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime(timezone=True), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    remaining_seconds = Column(Integer, nullable=True)
    result = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    exam_definition = relationship("ExamDefinition")
    answers = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptAnswer.position",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "exam_definition_id", name="uq_attempt_user_exam"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<Attempt(id={self.id}, user_id='{self.user_id}', exam={self.exam_definition_id}, status='{self.status}')>"


class AttemptAnswer(Base):
    """Answer slot for one question position within an attempt."""
    __tablename__ = "attempt_answers"

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    selected_answer = Column(String(1), nullable=True)  # "A", "B", "C", "D" or null if unanswered
    is_correct = Column(Boolean, nullable=False, default=False)

    attempt = relationship("Attempt", back_populates="answers")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("attempt_id", "position", name="uq_attempt_answer_position"),
    )

    def __repr__(self):
        return f"<AttemptAnswer(attempt_id={self.attempt_id}, pos={self.position}, ans='{self.selected_answer}')>"


# ==========================================
# ENTITLEMENTS (written by the billing side)
# ==========================================

class UserEntitlement(Base):
    """Premium plan granted to a user. Read-only to the engine."""
    __tablename__ = "user_entitlements"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    plan = Column(String(20), nullable=False)  # weekly, monthly, quarterly, promo
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # null = no expiry
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<UserEntitlement(user_id='{self.user_id}', plan='{self.plan}')>"
