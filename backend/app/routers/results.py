from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.result import TestResult, TestResultAnswer
from app.models.test_type import TestType
from app.models.user import User
from app.schemas.result import AnswerOut, ResultDetail, ResultListResponse, ResultSummary
from app.services.ranking import is_comprehensive

router = APIRouter(prefix="/results", tags=["results"])


def _summary_fields(r: TestResult, title: str) -> dict:
    return {
        "id": int(r.id),
        "test_type_id": r.test_type_id,
        "test_title": title,
        "score": int(r.score or 0),
        "percentile": float(r.percentile or 0.0),
        "better_than": f"{float(r.percentile or 0.0):.1f}%",
        "accuracy": float(r.accuracy or 0.0),
        "iq_score": r.iq_score if is_comprehensive(r.test_type_id) else None,
        "duration": r.duration or "N/A",
        "questions_completed": int(r.questions_completed or 0),
        "completed_at": r.completed_at,
    }


def _list(db: Session, *, user: User, test_type_id: str | None, limit: int) -> ResultListResponse:
    q = (
        select(TestResult, TestType.title)
        .join(TestType, TestType.id == TestResult.test_type_id)
        .where(TestResult.user_id == user.id)
    )
    if test_type_id is not None:
        q = q.where(TestResult.test_type_id == test_type_id)
    rows = db.execute(q.order_by(TestResult.completed_at.desc(), TestResult.id.desc()).limit(limit)).all()
    return ResultListResponse(items=[ResultSummary(**_summary_fields(r, title)) for r, title in rows])


@router.get("", response_model=ResultListResponse)
def my_results(
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _list(db, user=user, test_type_id=None, limit=limit)


@router.get("/test-type/{test_type_id}", response_model=ResultListResponse)
def my_results_by_test_type(
    test_type_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if db.get(TestType, test_type_id) is None:
        raise HTTPException(status_code=404, detail="test type not found")
    return _list(db, user=user, test_type_id=test_type_id, limit=limit)


@router.get("/{result_id}", response_model=ResultDetail)
def my_result(
    result_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    row = db.execute(
        select(TestResult, TestType.title)
        .join(TestType, TestType.id == TestResult.test_type_id)
        .where(TestResult.id == result_id, TestResult.user_id == user.id)
    ).first()
    if row is None:
        raise HTTPException(status_code=404, detail="result not found")

    r, title = row
    answers = db.scalars(
        select(TestResultAnswer).where(TestResultAnswer.test_result_id == r.id).order_by(TestResultAnswer.id)
    ).all()
    return ResultDetail(
        **_summary_fields(r, title),
        correct_count=int(r.correct_count or 0),
        answers=[
            AnswerOut(question_id=a.question_id, type=a.type, user_answer=a.user_answer, is_correct=bool(a.is_correct))
            for a in answers
        ],
    )
