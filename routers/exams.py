"""
Exam attempt router (user-facing).
Start / resume / reattempt an exam, save answers, pause, submit,
review graded attempts, recommendations, history and progress.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from assessment.grading import performance_level
from assessment.recommendations import attach_targets, generate_recommendations
from assessment.schemas import AttemptResult
from auth.security import get_current_user_id
from database import crud
from database.database import get_db
from database.models import Attempt
from services import attempts, telemetry

router = APIRouter(prefix="/exams", tags=["exams"])

_START_EVENTS = {
    attempts.CREATED: "exam_started",
    attempts.RESUMED: "exam_resumed",
    attempts.REATTEMPTED: "exam_reattempted",
}


# ─── Schemas ───────────────────────────────────────────────────────────────────

class SaveAnswerRequest(BaseModel):
    question_index: int
    selected_answer: Optional[str] = None  # A, B, C, D or null to clear

class PauseRequest(BaseModel):
    remaining_seconds: Optional[int] = None
    current_index: Optional[int] = None


# ─── Helpers ───────────────────────────────────────────────────────────────────

def _iso(dt):
    return dt.isoformat() if dt else None


def _attempt_view(attempt: Attempt, db: Session, resumed: bool = False) -> dict:
    """In-progress view of an attempt. Never includes answer keys or explanations."""
    pq_map = crud.get_questions_by_ids(db, attempt.question_ids or [])

    questions = []
    user_answers = {}
    for slot in attempt.answers:
        q = pq_map.get(slot.question_id)
        questions.append({
            "question_id": slot.question_id,
            "index": slot.position,
            "question_text": q.question_text if q else None,
            "choice_a": q.choice_a if q else None,
            "choice_b": q.choice_b if q else None,
            "choice_c": q.choice_c if q else None,
            "choice_d": q.choice_d if q else None,
            "section": q.section if q else None,
        })
        if slot.selected_answer:
            user_answers[slot.position] = slot.selected_answer

    return {
        "attempt_id": attempt.id,
        "exam_id": attempt.exam_definition_id,
        "status": attempt.status,
        "resumed": resumed,
        "current_index": attempt.current_index,
        "started_at": _iso(attempt.started_at),
        "remaining_seconds": attempt.remaining_seconds,
        "total_questions": len(questions),
        "questions": questions,
        "answered_indices": sorted(user_answers),
        "user_answers": user_answers,
    }


def _review_view(attempt: Attempt, db: Session) -> dict:
    """Full detail of a finished attempt, with keys and explanations."""
    pq_map = crud.get_questions_by_ids(db, attempt.question_ids or [])
    definition = attempt.exam_definition

    questions = []
    for slot in attempt.answers:
        q = pq_map.get(slot.question_id)
        questions.append({
            "question_id": slot.question_id,
            "index": slot.position,
            "question_text": q.question_text if q else None,
            "choice_a": q.choice_a if q else None,
            "choice_b": q.choice_b if q else None,
            "choice_c": q.choice_c if q else None,
            "choice_d": q.choice_d if q else None,
            "section": q.section if q else None,
            "correct_answer": q.correct_answer if q else None,
            "explanation_correct": q.explanation_correct if q else None,
            "explanation_wrong": q.explanation_wrong if q else None,
            "tip": q.tip if q else None,
            "selected_answer": slot.selected_answer,
            "is_correct": bool(slot.is_correct),
        })

    return {
        "attempt_id": attempt.id,
        "exam": {"id": definition.id, "title": definition.title, "slug": definition.slug},
        "status": attempt.status,
        "submitted_at": _iso(attempt.submitted_at),
        "result": attempt.result,
        "questions": questions,
    }


def _attempt_summary(attempt: Attempt) -> dict:
    definition = attempt.exam_definition
    return {
        "attempt_id": attempt.id,
        "exam": {
            "id": definition.id,
            "title": definition.title,
            "slug": definition.slug,
            "type": definition.type,
            "time_limit_seconds": definition.time_limit_seconds,
            "passing_threshold": definition.passing_threshold,
        },
        "status": attempt.status,
        "current_index": attempt.current_index,
        "started_at": _iso(attempt.started_at),
        "submitted_at": _iso(attempt.submitted_at),
        "remaining_seconds": attempt.remaining_seconds,
        "result": attempt.result,
    }


# ─── Routes ────────────────────────────────────────────────────────────────────

@router.post("/{exam_id}/start")
def start_exam(
    exam_id: int,
    response: Response,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Start an exam: resume the in-progress attempt, or create / reset one."""
    attempt, outcome = attempts.start_attempt(db, user_id, exam_id)

    if outcome == attempts.CREATED:
        response.status_code = status.HTTP_201_CREATED
    background_tasks.add_task(
        telemetry.capture, user_id, _START_EVENTS[outcome], {"exam_id": exam_id, "attempt_id": attempt.id},
    )
    return _attempt_view(attempt, db, resumed=outcome == attempts.RESUMED)


# Fixed paths before /attempts/{attempt_id}
@router.get("/attempts/user/history")
def get_user_history(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """All attempts of the current user, newest first."""
    return attempts.user_history(db, user_id)


@router.get("/attempts/user/progress/{exam_id}")
def get_exam_progress(exam_id: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """In-progress snapshot and score stats for one exam."""
    return attempts.exam_progress(db, user_id, exam_id)


@router.put("/attempts/{attempt_id}/answer")
def save_exam_answer(
    attempt_id: int,
    request: SaveAnswerRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Save (or clear) the answer at one question index."""
    attempts.save_answer(db, attempt_id, user_id, request.question_index, request.selected_answer)
    return {"success": True}


@router.put("/attempts/{attempt_id}/pause")
def pause_exam(
    attempt_id: int,
    request: PauseRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Persist the client's timer and position."""
    attempts.pause_attempt(db, attempt_id, user_id, request.remaining_seconds, request.current_index)
    return {"success": True, "message": "Exam paused"}


@router.post("/attempts/{attempt_id}/submit")
def submit_exam(
    attempt_id: int,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Final submit: grade once and persist. Narrative insight lands after the response."""
    attempt, result, graded_here = attempts.submit_attempt(db, attempt_id, user_id)

    if graded_here:
        definition = attempt.exam_definition
        background_tasks.add_task(
            attempts.augment_attempt,
            attempt.id,
            result,
            definition.type,
            time_limit_seconds=definition.time_limit_seconds,
            seconds_used=attempts.seconds_used(attempt, definition),
        )
        background_tasks.add_task(telemetry.capture, user_id, "exam_submitted", {
            "exam_id": attempt.exam_definition_id,
            "attempt_id": attempt.id,
            "percentage": result.percentage,
            "passed": result.passed,
        })

    return {"attempt_id": attempt.id, "result": result.model_dump()}


@router.get("/attempts/{attempt_id}/review")
def get_attempt_review(attempt_id: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Graded attempt with correct answers and explanations."""
    attempt = attempts.get_finished_attempt(db, attempt_id, user_id)
    return _review_view(attempt, db)


@router.get("/attempts/{attempt_id}/recommendations")
def get_attempt_recommendations(
    attempt_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Recommended next steps for a graded attempt."""
    attempt = attempts.get_finished_attempt(db, attempt_id, user_id)
    current = attempt.exam_definition
    result = AttemptResult.model_validate(attempt.result)

    catalog = crud.list_exam_definitions(db)
    ctas = generate_recommendations(current.type, result, catalog, current=current)
    ctas = attach_targets(ctas, catalog + [current])

    return {
        "attempt_id": attempt.id,
        "exam_type": current.type,
        "performance_level": performance_level(result.percentage),
        "ctas": [c.model_dump() for c in ctas],
    }


@router.get("/attempts/{attempt_id}")
def get_attempt_result(attempt_id: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Attempt summary without the question list."""
    return _attempt_summary(attempts.get_attempt(db, attempt_id, user_id))
