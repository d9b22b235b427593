"""
Step 2: Grading Engine

Scores a completed attempt: per-answer correctness, per-section tallies,
overall percentage, pass/fail against an optional threshold, and the
heuristic strengths/improvements that stand whenever narrative
augmentation is unavailable.
"""

import math
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from assessment.schemas import AttemptResult, SectionScore

STRENGTH_LIMIT = 3
IMPROVEMENT_LIMIT = 4
IMPROVEMENT_BELOW = 80.0

# Performance bands (inclusive lower bounds)
BAND_STRONG = 85.0
BAND_DEVELOPING = 70.0


def _pct(correct: int, total: int) -> float:
    return round(correct / total * 100, 2) if total else 0.0


def performance_level(percentage: float) -> str:
    """Strong >= 85, Developing 70-84, else Needs Improvement."""
    if percentage >= BAND_STRONG:
        return "Strong"
    if percentage >= BAND_DEVELOPING:
        return "Developing"
    return "Needs Improvement"


def grade_answer(selected: Optional[str], correct: str) -> Optional[bool]:
    """
    None when unanswered, True when the letter matches the key, else False.
    An unanswered item is never counted as incorrect.
    """
    if not selected:
        return None
    return selected.upper() == (correct or "").upper()


def heuristic_insights(section_scores: Sequence[SectionScore]) -> Tuple[List[str], List[str]]:
    """
    Top three sections by score are strengths; sections under 80%,
    weakest first, capped at four, are improvements.
    """
    by_score = sorted(section_scores, key=lambda s: s.score, reverse=True)
    strengths = [s.section for s in by_score[:STRENGTH_LIMIT]]
    weak = sorted((s for s in section_scores if s.score < IMPROVEMENT_BELOW), key=lambda s: s.score)
    improvements = [s.section for s in weak[:IMPROVEMENT_LIMIT]]
    return strengths, improvements


def grade(
    answers: Sequence[Tuple[Optional[str], str, Optional[str]]],
    passing_threshold: Optional[float] = None,
) -> Tuple[AttemptResult, List[bool]]:
    """
    Grade an ordered list of answers.

    Args:
        answers: (selected letter or None, correct letter, section) per position
        passing_threshold: Pass mark in percent, or None for no pass/fail

    Returns:
        (result block, is_correct flag per position)
    """
    sections: Dict[str, SectionScore] = {}
    flags: List[bool] = []
    correct = incorrect = unanswered = 0

    for selected, key, section in answers:
        name = section or "other"
        bucket = sections.get(name)
        if bucket is None:
            bucket = sections[name] = SectionScore(section=name)
        bucket.total_items += 1

        outcome = grade_answer(selected, key)
        if outcome is None:
            unanswered += 1
            bucket.unanswered += 1
        elif outcome:
            correct += 1
            bucket.correct += 1
        else:
            incorrect += 1
            bucket.incorrect += 1
        flags.append(bool(outcome))

    section_scores = list(sections.values())
    for s in section_scores:
        s.score = _pct(s.correct, s.total_items)

    total = len(answers)
    percentage = _pct(correct, total)
    strengths, improvements = heuristic_insights(section_scores)

    passed = None
    passing_score = None
    if passing_threshold:
        passing_score = math.ceil(passing_threshold * total / 100)
        passed = percentage >= passing_threshold

    result = AttemptResult(
        total_items=total,
        correct=correct,
        incorrect=incorrect,
        unanswered=unanswered,
        percentage=percentage,
        passed=passed,
        passing_score=passing_score,
        performance_level=performance_level(percentage),
        section_scores=section_scores,
        strengths=strengths,
        improvements=improvements,
    )
    return result, flags


def grade_attempt(attempt, questions: Mapping[int, object], passing_threshold: Optional[float] = None):
    """
    Grade a persisted attempt against its catalog questions.

    Writes is_correct onto each answer slot and returns the result block.
    A slot whose question has vanished from the catalog is graded against
    an empty key (never correct) under section "other".
    """
    rows = []
    for slot in attempt.answers:
        q = questions.get(slot.question_id)
        rows.append((
            slot.selected_answer,
            q.correct_answer if q is not None else "",
            q.section if q is not None else None,
        ))

    result, flags = grade(rows, passing_threshold)
    for slot, flag in zip(attempt.answers, flags):
        slot.is_correct = flag
    return result


def without_narrative(result: AttemptResult) -> AttemptResult:
    """
    The graded result as committed by submit: heuristic strengths and
    improvements recomputed from the section scores, narrative fields cleared.
    """
    strengths, improvements = heuristic_insights(result.section_scores)
    return result.model_copy(update={
        "strengths": strengths,
        "improvements": improvements,
        "ai_summary": None,
        "pacing_insight": None,
    })
