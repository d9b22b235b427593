"""
Attempt lifecycle manager.

One attempt row per (user, exam definition). States:
    in_progress -> submitted | timed_out   (terminal, never left except by reattempt reset)

Mutual exclusion comes from the store only:
  - creation: unique (user_id, exam_definition_id); a losing creator re-reads and adopts
  - reattempt: conditional reset that only matches a terminal row
  - submission: conditional in_progress -> submitted; a losing submitter re-reads the graded row
Each is a compare-and-swap primitive in database.crud driven by a bounded loop here.
"""

import logging
import random
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assessment import grading, insights
from assessment.schemas import AttemptResult
from assessment.selector import assemble_exam
from database import crud
from database.database import SessionLocal
from database.models import Attempt, AttemptStatus, ExamDefinition
from database.schemas import ExamConfig
from services import entitlements
from services.errors import ForbiddenError, InvalidInputError, InvalidStateError, NotFoundError

log = logging.getLogger(__name__)

MAX_START_ROUNDS = 3
VALID_LETTERS = ("A", "B", "C", "D")

CREATED = "created"
RESUMED = "resumed"
REATTEMPTED = "reattempted"


def _now():
    return datetime.now(timezone.utc)


def exam_config(definition: ExamDefinition) -> ExamConfig:
    """Validated assembly configuration of a definition."""
    try:
        return ExamConfig.model_validate(definition)
    except ValidationError as e:
        log.error("Exam definition %s has an invalid exam configuration: %s", definition.id, e)
        raise InvalidStateError("Exam definition has an invalid exam configuration")


def _get_definition(db: Session, exam_id: int) -> ExamDefinition:
    definition = crud.get_exam_definition(db, exam_id)
    if not definition:
        raise NotFoundError("Exam not found")
    return definition


def _get_attempt(db: Session, attempt_id: int, user_id: str) -> Attempt:
    attempt = crud.get_owned_attempt(db, attempt_id, user_id)
    if not attempt:
        raise NotFoundError("Attempt not found")
    return attempt


def _require_in_progress(attempt: Attempt) -> None:
    if attempt.status != AttemptStatus.IN_PROGRESS.value:
        raise InvalidStateError("Attempt is not in progress")


# ─── Start / resume / reattempt ────────────────────────────────────────────────

def assemble_question_ids(db: Session, config: ExamConfig, rng: Optional[random.Random] = None) -> List[int]:
    """Draw questions for every section target and return IDs in delivery order."""
    picked = assemble_exam(
        config,
        lambda section: crud.get_question_pool(db, config.exam_family, config.exam_levels, section),
        rng=rng,
    )
    return [q.id for q in picked]


def _fresh_state(config: ExamConfig, now: datetime) -> dict:
    return {
        "current_index": 0,
        "started_at": now,
        "submitted_at": None,
        "remaining_seconds": config.time_limit_seconds or None,
        "result": AttemptResult.empty().model_dump(),
    }


def start_attempt(
    db: Session,
    user_id: str,
    exam_id: int,
    rng: Optional[random.Random] = None,
) -> Tuple[Attempt, str]:
    """
    Resume, create, or reset the user's attempt on an exam.

    Returns:
        (attempt, outcome) where outcome is "resumed", "created" or "reattempted"
    """
    definition = _get_definition(db, exam_id)
    config = exam_config(definition)
    access_checked = False

    for _ in range(MAX_START_ROUNDS):
        existing = crud.get_attempt_for_user_exam(db, user_id, exam_id)
        if existing is not None and existing.status == AttemptStatus.IN_PROGRESS.value:
            return existing, RESUMED

        if not access_checked:
            if not entitlements.can_access(db, user_id, definition.access):
                raise ForbiddenError("Premium access required")
            access_checked = True

        now = _now()

        if existing is not None:
            if config.variant == "fixed" and existing.question_ids:
                question_ids = list(existing.question_ids)
            else:
                question_ids = assemble_question_ids(db, config, rng)

            if not crud.try_claim_reset(db, existing.id, question_ids=question_ids, **_fresh_state(config, now)):
                db.rollback()
                log.info("Concurrent reattempt on attempt %s; re-reading", existing.id)
                continue
            db.expire(existing)
            crud.replace_answers(db, existing, question_ids)
            db.commit()
            db.refresh(existing)
            log.info("Attempt %s reset for reattempt (%d questions)", existing.id, len(question_ids))
            return existing, REATTEMPTED

        question_ids = assemble_question_ids(db, config, rng)
        if not question_ids:
            log.warning("Exam %s assembled no questions for user %s", exam_id, user_id)
        attempt = Attempt(
            user_id=user_id,
            exam_definition_id=exam_id,
            question_ids=question_ids,
            status=AttemptStatus.IN_PROGRESS.value,
            answers=crud.build_answer_slots(question_ids),
            **_fresh_state(config, now),
        )
        if crud.try_insert_attempt(db, attempt):
            log.info("Attempt %s created for user %s on exam %s", attempt.id, user_id, exam_id)
            return attempt, CREATED
        log.info("Concurrent start for user %s on exam %s; adopting existing attempt", user_id, exam_id)

    raise InvalidStateError("Could not start the exam, please try again")


# ─── In-progress mutations ─────────────────────────────────────────────────────

def normalize_letter(selected: Optional[str]) -> Optional[str]:
    """Upper-cased A-D, or None for a cleared answer."""
    if selected is None or (isinstance(selected, str) and not selected.strip()):
        return None
    letter = selected.strip().upper() if isinstance(selected, str) else None
    if letter not in VALID_LETTERS:
        raise InvalidInputError("Selected answer must be one of A, B, C, D")
    return letter


def save_answer(db: Session, attempt_id: int, user_id: str, index: int, selected: Optional[str]) -> None:
    """Overwrite the answer at `index` and move the cursor there. Idempotent."""
    attempt = _get_attempt(db, attempt_id, user_id)
    _require_in_progress(attempt)
    letter = normalize_letter(selected)
    if index < 0 or index >= len(attempt.answers):
        raise InvalidInputError("Invalid question index")

    if not crud.write_answer(db, attempt.id, index, letter):
        db.rollback()
        raise InvalidStateError("Attempt is not in progress")
    db.commit()


def pause_attempt(
    db: Session,
    attempt_id: int,
    user_id: str,
    remaining_seconds: Optional[int] = None,
    current_index: Optional[int] = None,
) -> None:
    """Persist the client's timer and position snapshot."""
    attempt = _get_attempt(db, attempt_id, user_id)
    _require_in_progress(attempt)

    fields = {}
    if remaining_seconds is not None:
        if remaining_seconds < 0:
            raise InvalidInputError("remaining_seconds must not be negative")
        fields["remaining_seconds"] = remaining_seconds
    if current_index is not None:
        if current_index < 0 or current_index >= max(len(attempt.answers), 1):
            raise InvalidInputError("Invalid question index")
        fields["current_index"] = current_index

    if not crud.write_progress(db, attempt.id, **fields):
        db.rollback()
        raise InvalidStateError("Attempt is not in progress")
    db.commit()


# ─── Submit ────────────────────────────────────────────────────────────────────

def submit_attempt(db: Session, attempt_id: int, user_id: str) -> Tuple[Attempt, AttemptResult, bool]:
    """
    Grade and freeze an in-progress attempt.

    Returns:
        (attempt, result, graded_here). graded_here is False when a
        concurrent submit won the transition; the stored result is returned.
    """
    attempt = _get_attempt(db, attempt_id, user_id)
    _require_in_progress(attempt)

    now = _now()
    if not crud.try_claim_submission(db, attempt.id, user_id, now):
        db.rollback()
        log.info("Attempt %s already submitted concurrently; returning stored result", attempt_id)
        stored = _get_attempt(db, attempt_id, user_id)
        return stored, grading.without_narrative(AttemptResult.model_validate(stored.result)), False

    # Grade the slots as they stand at the claim, not as first read
    db.expire_all()
    definition = attempt.exam_definition
    questions = crud.get_questions_by_ids(db, attempt.question_ids or [])
    result = grading.grade_attempt(attempt, questions, definition.passing_threshold)

    attempt.status = AttemptStatus.SUBMITTED.value
    attempt.submitted_at = now
    attempt.result = result.model_dump()
    db.commit()
    db.refresh(attempt)
    log.info(
        "Attempt %s graded: %d/%d (%.2f%%)",
        attempt.id, result.correct, result.total_items, result.percentage,
    )
    return attempt, result, True


def seconds_used(attempt: Attempt, definition: ExamDefinition) -> Optional[int]:
    """Time spent according to the last client timer snapshot (timed exams only)."""
    if not definition.time_limit_seconds or attempt.remaining_seconds is None:
        return None
    return max(0, definition.time_limit_seconds - attempt.remaining_seconds)


def _persist_insight(attempt_id: int, enriched: AttemptResult) -> bool:
    db = SessionLocal()
    try:
        if not crud.write_result(db, attempt_id, enriched.model_dump()):
            db.rollback()
            return False
        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("Could not persist insight for attempt %s: %s", attempt_id, e)
        return False
    finally:
        db.close()


async def augment_attempt(
    attempt_id: int,
    result: AttemptResult,
    exam_type: str,
    time_limit_seconds: int = 0,
    seconds_used: Optional[int] = None,
) -> Optional[AttemptResult]:
    """
    Best-effort narrative layer over an already committed result.
    Runs after the submit response, on its own session. Returns the enriched
    result only if it was persisted; None leaves the graded result in place.
    """
    insight = await insights.generate_insight(
        result,
        exam_type,
        time_limit_seconds=time_limit_seconds,
        seconds_used=seconds_used,
    )
    if insight is None:
        return None

    enriched = insights.apply_insight(result, insight)
    if not await run_in_threadpool(_persist_insight, attempt_id, enriched):
        return None
    log.info("Attempt %s result enriched with narrative insight", attempt_id)
    return enriched


# ─── Reads ─────────────────────────────────────────────────────────────────────

def get_finished_attempt(db: Session, attempt_id: int, user_id: str) -> Attempt:
    """Attempt that has been submitted or timed out (for review / recommendations)."""
    attempt = _get_attempt(db, attempt_id, user_id)
    if not attempt.is_terminal:
        raise InvalidStateError("Attempt is still in progress")
    return attempt


def get_attempt(db: Session, attempt_id: int, user_id: str) -> Attempt:
    return _get_attempt(db, attempt_id, user_id)


def answered_count(attempt: Attempt) -> int:
    return sum(1 for a in attempt.answers if a.selected_answer is not None)


def progress_block(attempt: Attempt) -> dict:
    total = len(attempt.answers)
    answered = answered_count(attempt)
    return {
        "current": attempt.current_index or 0,
        "answered_count": answered,
        "total_questions": total,
        "progress_percent": round(answered / total * 100) if total else 0,
    }


def user_history(db: Session, user_id: str) -> List[dict]:
    """Summaries of every attempt the user owns, newest first."""
    out = []
    for a in crud.list_user_attempts(db, user_id):
        result = a.result or {}
        d = a.exam_definition
        entry = {
            "attempt_id": a.id,
            "exam": {"id": d.id, "title": d.title, "slug": d.slug, "type": d.type} if d else None,
            "status": a.status,
            "percentage": result.get("percentage", 0),
            "passed": result.get("passed"),
            "correct": result.get("correct", 0),
            "total_items": result.get("total_items", 0),
            "current_index": a.current_index,
            "remaining_seconds": a.remaining_seconds,
            "created_at": a.created_at.isoformat() if a.created_at else None,
            "submitted_at": a.submitted_at.isoformat() if a.submitted_at else None,
        }
        if a.status == AttemptStatus.IN_PROGRESS.value:
            entry["progress"] = progress_block(a)
        out.append(entry)
    return out


def exam_progress(db: Session, user_id: str, exam_id: int) -> dict:
    """In-progress snapshot plus best / average / pass-count over finished attempts."""
    _get_definition(db, exam_id)
    attempts = crud.list_user_attempts(db, user_id, exam_id=exam_id)

    in_progress = next((a for a in attempts if a.status == AttemptStatus.IN_PROGRESS.value), None)
    completed = [a for a in attempts if a.is_terminal]
    scores = [(a.result or {}).get("percentage", 0) or 0 for a in completed]

    summary = None
    if in_progress is not None:
        block = progress_block(in_progress)
        summary = {
            "attempt_id": in_progress.id,
            "current_index": block["current"],
            "total_questions": block["total_questions"],
            "answered_count": block["answered_count"],
            "progress_percent": block["progress_percent"],
            "remaining_seconds": in_progress.remaining_seconds,
            "started_at": in_progress.started_at.isoformat() if in_progress.started_at else None,
        }

    return {
        "in_progress": summary,
        "total_attempts": len(completed),
        "best_score": max(scores) if scores else None,
        "avg_score": round(sum(scores) / len(scores)) if scores else None,
        "pass_count": sum(1 for a in completed if (a.result or {}).get("passed")),
        "history": [
            {
                "attempt_id": a.id,
                "percentage": (a.result or {}).get("percentage", 0),
                "passed": bool((a.result or {}).get("passed")),
                "correct": (a.result or {}).get("correct", 0),
                "total_items": (a.result or {}).get("total_items", 0),
                "submitted_at": a.submitted_at.isoformat() if a.submitted_at else None,
            }
            for a in completed
        ],
    }
