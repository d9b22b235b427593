"""
Load questions and exam definitions into the catalog from a JSON file.

FILE FORMAT:
    {
      "questions":        [ {QuestionRecord fields}, ... ],
      "exam_definitions": [ {ExamDefinitionRecord fields}, ... ]
    }

Every record is validated first. If any record is invalid nothing is
written and every error is reported. Questions are upserted by id,
exam definitions by slug.

USAGE:
    python seed_catalog.py catalog.json [--dry-run]
"""

import argparse
import json
import sys
from typing import List, Tuple

from dotenv import load_dotenv
from pydantic import ValidationError
from sqlalchemy.orm import Session

load_dotenv()

from database.database import SessionLocal, engine, Base
from database.models import ExamDefinition, Question
from database.schemas import ExamDefinitionRecord, QuestionRecord


def validate_catalog(data: dict) -> Tuple[List[QuestionRecord], List[ExamDefinitionRecord], List[str]]:
    """Validate every record. Returns (questions, definitions, errors)."""
    questions, definitions, errors = [], [], []

    for i, raw in enumerate(data.get("questions") or []):
        try:
            questions.append(QuestionRecord.model_validate(raw))
        except ValidationError as e:
            errors.append(f"questions[{i}]: {e}")

    seen_slugs = set()
    for i, raw in enumerate(data.get("exam_definitions") or []):
        try:
            record = ExamDefinitionRecord.model_validate(raw)
        except ValidationError as e:
            errors.append(f"exam_definitions[{i}]: {e}")
            continue
        if record.slug in seen_slugs:
            errors.append(f"exam_definitions[{i}]: duplicate slug '{record.slug}'")
            continue
        seen_slugs.add(record.slug)
        definitions.append(record)

    return questions, definitions, errors


def load_catalog(db: Session, questions: List[QuestionRecord], definitions: List[ExamDefinitionRecord]) -> dict:
    """Upsert validated records and commit. Returns insert/update counts."""
    stats = {"questions_created": 0, "questions_updated": 0, "exams_created": 0, "exams_updated": 0}

    for rec in questions:
        fields = rec.model_dump(exclude={"id"})
        row = db.query(Question).filter(Question.id == rec.id).first() if rec.id else None
        if row is None:
            db.add(Question(id=rec.id, **fields) if rec.id else Question(**fields))
            stats["questions_created"] += 1
        else:
            for k, v in fields.items():
                setattr(row, k, v)
            stats["questions_updated"] += 1

    for rec in definitions:
        fields = rec.model_dump(exclude={"id"}, mode="json")
        row = db.query(ExamDefinition).filter(ExamDefinition.slug == rec.slug).first()
        if row is None:
            db.add(ExamDefinition(id=rec.id, **fields) if rec.id else ExamDefinition(**fields))
            stats["exams_created"] += 1
        else:
            for k, v in fields.items():
                setattr(row, k, v)
            stats["exams_updated"] += 1

    db.commit()
    return stats


def main():
    parser = argparse.ArgumentParser(
        description="Validate and load a catalog JSON file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("path", help="Catalog JSON file")
    parser.add_argument("--dry-run", action="store_true", help="Validate only, write nothing")
    args = parser.parse_args()

    try:
        with open(args.path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"ERROR: could not read {args.path}: {e}")
        sys.exit(1)

    questions, definitions, errors = validate_catalog(data)
    if errors:
        print(f"Rejected {args.path}: {len(errors)} invalid record(s)")
        for err in errors:
            print(f"  ❌ {err}")
        sys.exit(1)

    print(f"Validated {len(questions)} questions, {len(definitions)} exam definitions")
    if args.dry_run:
        print("[DRY RUN] Nothing written")
        return

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        stats = load_catalog(db, questions, definitions)
    finally:
        db.close()

    print("Catalog loaded:")
    for k, v in stats.items():
        print(f"  {k}: {v}")


if __name__ == "__main__":
    main()
