"""
CRUD operations for the catalog and the attempt store
All database access of the engine goes through these functions
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import models
from database.models import AttemptStatus


# ==========================================
# EXAM DEFINITION READS
# ==========================================

def get_exam_definition(db: Session, exam_id: int) -> Optional[models.ExamDefinition]:
    """Get exam definition by ID"""
    return db.query(models.ExamDefinition).filter(models.ExamDefinition.id == exam_id).first()


def get_exam_definition_by_slug(db: Session, slug: str) -> Optional[models.ExamDefinition]:
    """Get exam definition by slug"""
    return db.query(models.ExamDefinition).filter(models.ExamDefinition.slug == slug).first()


def list_exam_definitions(
    db: Session,
    exam_type: Optional[str] = None,
    published_only: bool = True,
) -> List[models.ExamDefinition]:
    """List exam definitions in display order, optionally filtered by type"""
    q = db.query(models.ExamDefinition)
    if published_only:
        q = q.filter(models.ExamDefinition.status == "published")
    if exam_type:
        q = q.filter(models.ExamDefinition.type == exam_type)
    return q.order_by(models.ExamDefinition.display_order, models.ExamDefinition.id).all()


# ==========================================
# QUESTION READS
# ==========================================

def get_question_pool(
    db: Session,
    exam_family: str,
    exam_levels: List[str],
    section: str,
) -> List[models.Question]:
    """Approved questions eligible for one section of an exam"""
    q = db.query(models.Question).filter(
        models.Question.status == "approved",
        models.Question.exam_family == exam_family,
        models.Question.section == section,
    )
    if exam_levels:
        q = q.filter(models.Question.exam_level.in_(exam_levels))
    return q.all()


def get_questions_by_ids(db: Session, question_ids: Iterable[int]) -> Dict[int, models.Question]:
    """Map of question ID -> question for the given IDs"""
    ids = list(set(question_ids))
    if not ids:
        return {}
    rows = db.query(models.Question).filter(models.Question.id.in_(ids)).all()
    return {q.id: q for q in rows}


# ==========================================
# ATTEMPT READS
# ==========================================

def get_attempt_for_user_exam(db: Session, user_id: str, exam_id: int) -> Optional[models.Attempt]:
    """The single attempt of a user on an exam definition, if any"""
    return (
        db.query(models.Attempt)
        .options(joinedload(models.Attempt.answers))
        .filter(models.Attempt.user_id == user_id, models.Attempt.exam_definition_id == exam_id)
        .first()
    )


def get_owned_attempt(db: Session, attempt_id: int, user_id: str) -> Optional[models.Attempt]:
    """Attempt by ID, only if it belongs to the user"""
    return (
        db.query(models.Attempt)
        .options(joinedload(models.Attempt.answers), joinedload(models.Attempt.exam_definition))
        .filter(models.Attempt.id == attempt_id, models.Attempt.user_id == user_id)
        .first()
    )


def list_user_attempts(db: Session, user_id: str, exam_id: Optional[int] = None) -> List[models.Attempt]:
    """All attempts of a user, newest first"""
    q = (
        db.query(models.Attempt)
        .options(joinedload(models.Attempt.answers), joinedload(models.Attempt.exam_definition))
        .filter(models.Attempt.user_id == user_id)
    )
    if exam_id is not None:
        q = q.filter(models.Attempt.exam_definition_id == exam_id)
    return q.order_by(models.Attempt.created_at.desc(), models.Attempt.id.desc()).all()


# ==========================================
# ATTEMPT WRITES (compare-and-swap primitives)
# ==========================================

def try_insert_attempt(db: Session, attempt: models.Attempt) -> bool:
    """
    Insert a new attempt and commit.

    Returns False when the (user, exam) uniqueness constraint rejects the row
    because a concurrent request created it first. The session is rolled back
    in that case and the caller should re-read.
    """
    db.add(attempt)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    db.refresh(attempt)
    return True


def try_claim_submission(db: Session, attempt_id: int, user_id: str, submitted_at: datetime) -> bool:
    """
    Conditionally move an attempt from in_progress to submitted.

    The UPDATE only matches while the stored status is still in_progress, so
    of several concurrent submitters exactly one sees rowcount == 1. The
    transaction is left open so the winner can persist the graded result
    before committing.
    """
    stmt = (
        update(models.Attempt)
        .where(
            models.Attempt.id == attempt_id,
            models.Attempt.user_id == user_id,
            models.Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
        .values(status=AttemptStatus.SUBMITTED.value, submitted_at=submitted_at)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def try_claim_reset(db: Session, attempt_id: int, **fields) -> bool:
    """
    Conditionally move a finished attempt back to in_progress (reattempt).

    Only matches while the stored status is terminal, so two concurrent
    reattempts cannot both reset the row. Leaves the transaction open.
    """
    stmt = (
        update(models.Attempt)
        .where(
            models.Attempt.id == attempt_id,
            models.Attempt.status.in_(models.TERMINAL_STATUSES),
        )
        .values(status=AttemptStatus.IN_PROGRESS.value, **fields)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def _in_progress(attempt_id: int):
    return (
        select(models.Attempt.id)
        .where(models.Attempt.id == attempt_id, models.Attempt.status == AttemptStatus.IN_PROGRESS.value)
        .scalar_subquery()
    )


def write_answer(db: Session, attempt_id: int, position: int, selected: Optional[str]) -> bool:
    """Overwrite one answer slot and move current_index there, only while in progress"""
    hit = db.execute(
        update(models.AttemptAnswer)
        .where(
            models.AttemptAnswer.attempt_id == _in_progress(attempt_id),
            models.AttemptAnswer.position == position,
        )
        .values(selected_answer=selected)
        .execution_options(synchronize_session=False)
    ).rowcount
    if hit != 1:
        return False
    return write_progress(db, attempt_id, current_index=position)


def write_progress(db: Session, attempt_id: int, **fields) -> bool:
    """Update timer/position fields, only while in progress"""
    if not fields:
        return db.query(models.Attempt.id).filter(
            models.Attempt.id == attempt_id,
            models.Attempt.status == AttemptStatus.IN_PROGRESS.value,
        ).first() is not None
    stmt = (
        update(models.Attempt)
        .where(
            models.Attempt.id == attempt_id,
            models.Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
        .values(**fields)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def write_result(db: Session, attempt_id: int, result: dict) -> bool:
    """Replace the result block of a finished attempt"""
    stmt = (
        update(models.Attempt)
        .where(
            models.Attempt.id == attempt_id,
            models.Attempt.status.in_(models.TERMINAL_STATUSES),
        )
        .values(result=result)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def build_answer_slots(question_ids: List[int]) -> List[models.AttemptAnswer]:
    """One unanswered slot per question, in delivery order"""
    return [
        models.AttemptAnswer(position=idx, question_id=qid, selected_answer=None, is_correct=False)
        for idx, qid in enumerate(question_ids)
    ]


def replace_answers(db: Session, attempt: models.Attempt, question_ids: List[int]) -> None:
    """Reset the answer slots of a persisted attempt for a new question list"""
    attempt.answers.clear()
    # Old slots must be gone before new ones hit (attempt_id, position)
    db.flush()
    attempt.answers.extend(build_answer_slots(question_ids))
    attempt.question_ids = list(question_ids)


# ==========================================
# ENTITLEMENTS
# ==========================================

def get_entitlements(db: Session, user_id: str) -> List[models.UserEntitlement]:
    """All entitlement rows recorded for a user"""
    return db.query(models.UserEntitlement).filter(models.UserEntitlement.user_id == user_id).all()
