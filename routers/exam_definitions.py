"""
Exam definition catalog router (public, read-only).
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from database import crud
from database.database import get_db
from database.schemas import ExamDefinitionResponse

router = APIRouter(prefix="/exam-definitions", tags=["exam-definitions"])


@router.get("/", response_model=List[ExamDefinitionResponse])
def list_definitions(
    type: Optional[str] = Query(None, description="mock, practice or demo"),
    db: Session = Depends(get_db),
):
    """Published exam definitions in display order."""
    return crud.list_exam_definitions(db, exam_type=type)


@router.get("/slug/{slug}", response_model=ExamDefinitionResponse)
def get_definition_by_slug(slug: str, db: Session = Depends(get_db)):
    definition = crud.get_exam_definition_by_slug(db, slug)
    if not definition or definition.status != "published":
        raise HTTPException(status_code=404, detail="Exam not found")
    return definition


@router.get("/{exam_id}", response_model=ExamDefinitionResponse)
def get_definition(exam_id: int, db: Session = Depends(get_db)):
    definition = crud.get_exam_definition(db, exam_id)
    if not definition or definition.status != "published":
        raise HTTPException(status_code=404, detail="Exam not found")
    return definition
