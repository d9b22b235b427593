from types import SimpleNamespace

import pytest

from assessment.grading import (
    grade, grade_answer, grade_attempt, heuristic_insights, performance_level, without_narrative,
)
from assessment.schemas import SectionScore


def rows(correct=0, incorrect=0, unanswered=0, section="verbal"):
    return (
        [("A", "A", section)] * correct
        + [("B", "A", section)] * incorrect
        + [(None, "A", section)] * unanswered
    )


def test_answer_outcomes():
    assert grade_answer("A", "A") is True
    assert grade_answer("b", "B") is True
    assert grade_answer("C", "A") is False
    assert grade_answer(None, "A") is None


def test_seventy_twenty_ten():
    result, flags = grade(rows(correct=70, incorrect=20, unanswered=10))

    assert result.total_items == 100
    assert (result.correct, result.incorrect, result.unanswered) == (70, 20, 10)
    assert result.percentage == 70.0
    assert flags.count(True) == 70


def test_unanswered_is_not_incorrect():
    result, flags = grade(rows(unanswered=3))
    assert result.incorrect == 0
    assert result.unanswered == 3
    assert flags == [False, False, False]


def test_percentage_rounds_to_two_decimals():
    result, _ = grade(rows(correct=1, incorrect=2))
    assert result.percentage == 33.33
    assert result.section_scores[0].score == 33.33


def test_no_threshold_leaves_pass_unset():
    result, _ = grade(rows(correct=9, incorrect=1))
    assert result.passed is None
    assert result.passing_score is None

    result, _ = grade(rows(correct=9, incorrect=1), passing_threshold=0)
    assert result.passed is None


@pytest.mark.parametrize("correct,expected", [(8, True), (7, False)])
def test_threshold_sets_pass_flag(correct, expected):
    result, _ = grade(rows(correct=correct, incorrect=10 - correct), passing_threshold=75)
    assert result.passing_score == 8  # ceil(7.5)
    assert result.passed is expected


def test_pass_mark_is_exact_at_whole_percent():
    result, _ = grade(rows(correct=55, incorrect=45), passing_threshold=55)
    assert result.passing_score == 55
    assert result.passed is True

    result, _ = grade(rows(correct=29, incorrect=71), passing_threshold=29)
    assert result.passing_score == 29
    assert result.passed is True


def test_empty_attempt():
    result, flags = grade([], passing_threshold=80)
    assert result.total_items == 0
    assert result.percentage == 0.0
    assert result.passed is False
    assert flags == []


def test_section_totals_sum_to_total():
    answers = rows(correct=3, section="verbal") + rows(incorrect=2, unanswered=1, section="numerical")
    answers.append(("A", "A", None))
    result, _ = grade(answers)

    by_name = {s.section: s for s in result.section_scores}
    assert set(by_name) == {"verbal", "numerical", "other"}
    assert sum(s.total_items for s in result.section_scores) == result.total_items
    assert by_name["numerical"].unanswered == 1
    assert by_name["verbal"].score == 100.0


def test_heuristic_strengths_and_improvements():
    scores = [
        SectionScore(section="verbal", score=95),
        SectionScore(section="numerical", score=40),
        SectionScore(section="analytical", score=79.99),
        SectionScore(section="clerical", score=85),
        SectionScore(section="general information", score=60),
    ]
    strengths, improvements = heuristic_insights(scores)
    assert strengths == ["verbal", "clerical", "analytical"]
    assert improvements == ["numerical", "general information", "analytical"]


@pytest.mark.parametrize("pct,band", [
    (100, "Strong"), (85, "Strong"), (84.99, "Developing"), (70, "Developing"), (69.99, "Needs Improvement"),
])
def test_performance_bands(pct, band):
    assert performance_level(pct) == band


def test_grade_attempt_marks_slots():
    slots = [
        SimpleNamespace(question_id=1, selected_answer="A", is_correct=False),
        SimpleNamespace(question_id=2, selected_answer="D", is_correct=False),
        SimpleNamespace(question_id=3, selected_answer=None, is_correct=False),
    ]
    questions = {
        1: SimpleNamespace(correct_answer="A", section="verbal"),
        2: SimpleNamespace(correct_answer="B", section="verbal"),
        3: SimpleNamespace(correct_answer="C", section="numerical"),
    }
    result = grade_attempt(SimpleNamespace(answers=slots), questions, passing_threshold=50)

    assert [s.is_correct for s in slots] == [True, False, False]
    assert (result.correct, result.incorrect, result.unanswered) == (1, 1, 1)
    assert result.performance_level == "Needs Improvement"


def test_without_narrative_restores_graded_fields():
    result, _ = grade(rows(correct=3, incorrect=1) + rows(correct=1, incorrect=3, section="numerical"))
    enriched = result.model_copy(update={
        "strengths": ["Vocabulary"], "improvements": ["Analogies"],
        "ai_summary": "Solid base.", "pacing_insight": "Quick.",
    })

    assert without_narrative(enriched) == result
    assert without_narrative(result) == result
