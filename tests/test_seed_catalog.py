from conftest import definition_records, question_records
from database.models import ExamDefinition, Question
from seed_catalog import load_catalog, validate_catalog


def test_records_are_normalized():
    raw = question_records(per_difficulty=1)[0]
    raw.update({"section": "  Verbal ", "difficulty": "EASY", "correct_answer": " c", "exam_level": "Professional"})
    questions, _, errors = validate_catalog({"questions": [raw]})

    assert errors == []
    q = questions[0]
    assert (q.section, q.difficulty, q.correct_answer, q.exam_level) == ("verbal", "easy", "C", "professional")


def test_every_bad_record_is_reported():
    questions = question_records(per_difficulty=1)
    questions[0]["correct_answer"] = "E"
    questions[1]["difficulty"] = "extreme"
    definitions = definition_records()
    definitions[0]["difficulty_distribution"] = {"easy": 50, "medium": 50, "hard": 20}
    definitions[1]["slug"] = definitions[2]["slug"]
    definitions[3]["type"] = "quiz"

    _, _, errors = validate_catalog({"questions": questions, "exam_definitions": definitions})

    assert len(errors) == 5
    assert errors[0].startswith("questions[0]")
    assert errors[1].startswith("questions[1]")
    assert any("sum to 100" in e for e in errors)
    assert any("duplicate slug" in e for e in errors)
    assert any(e.startswith("exam_definitions[3]") for e in errors)


def test_load_upserts_by_slug(db):
    questions, definitions, _ = validate_catalog({
        "questions": question_records(per_difficulty=1),
        "exam_definitions": definition_records(),
    })
    stats = load_catalog(db, questions, definitions)
    assert stats["questions_created"] == 6
    assert stats["exams_created"] == 5

    changed = definition_records()[:1]
    changed[0]["title"] = "Renamed Mock"
    _, definitions, _ = validate_catalog({"exam_definitions": changed})
    stats = load_catalog(db, [], definitions)

    assert stats["exams_updated"] == 1
    assert db.query(ExamDefinition).count() == 5
    mock = db.query(ExamDefinition).filter(ExamDefinition.slug == "cse-pro-mock").one()
    assert mock.title == "Renamed Mock"
    assert mock.section_distribution == [{"section": "verbal", "count": 5}, {"section": "numerical", "count": 5}]
    assert db.query(Question).count() == 6
