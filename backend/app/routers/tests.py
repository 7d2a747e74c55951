from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.locks import LockTimeout
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.question import Question
from app.models.test_type import TestType
from app.models.user import User
from app.schemas.test import (
    QuestionPublic,
    SubmitRequest,
    TestResultResponse,
    TestStartResponse,
    TestTypePublic,
    TestTypeStats,
)
from app.services.question_bank import QuestionBank
from app.services.ranking import is_comprehensive
from app.services.scoring import normalize_weight
from app.services.submissions import RawAnswer, SubmissionService, UnknownTestType

router = APIRouter(prefix="/tests", tags=["tests"])


def _time_limit_label(seconds: int) -> str:
    minutes = int(seconds or 0) // 60
    return f"{minutes} minutes"


def _public_test_type(t: TestType) -> TestTypePublic:
    return TestTypePublic(
        id=t.id,
        title=t.title,
        description=t.description or "",
        is_comprehensive=is_comprehensive(t.id),
        stats=TestTypeStats(
            questions_count=int(t.questions_count or 0),
            time_limit=_time_limit_label(t.time_limit_seconds),
            time_limit_seconds=int(t.time_limit_seconds or 0),
        ),
    )


def _public_question(q: Question) -> QuestionPublic:
    # Never expose correct_answer here.
    return QuestionPublic(
        id=q.id,
        type=q.type,
        category=q.category,
        text=q.text or "",
        options=[str(o) for o in (q.options or [])],
        memorization_time=q.memorization_time,
        pairs=[[str(w) for w in pair] for pair in (q.pairs or [])],
        missing_indices=[[int(i) for i in idx] for idx in (q.missing_indices or [])],
        weight=normalize_weight(q.weight),
    )


@router.get("/types", response_model=list[TestTypePublic])
def list_test_types(db: Session = Depends(get_db)):
    return [_public_test_type(t) for t in QuestionBank(db).list_test_types()]


@router.get("/types/{test_type_id}", response_model=TestTypePublic)
def get_test_type(test_type_id: str, db: Session = Depends(get_db)):
    t = QuestionBank(db).get_test_type(test_type_id)
    if t is None:
        raise HTTPException(status_code=404, detail="test type not found")
    return _public_test_type(t)


@router.post("/{test_type_id}/start", response_model=TestStartResponse)
def start_test(
    test_type_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        started = SubmissionService(db).start(user=user, test_type_id=test_type_id)
    except UnknownTestType as e:
        raise HTTPException(status_code=404, detail="test type not found") from e

    if not started.questions:
        raise HTTPException(status_code=400, detail="test has no questions")

    return TestStartResponse(
        test_type_id=started.test_type.id,
        time_limit_seconds=int(started.test_type.time_limit_seconds or 0),
        started_at=started.started_at,
        questions=[_public_question(q) for q in started.questions],
    )


@router.post("/submit", response_model=TestResultResponse)
def submit_test(
    body: SubmitRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    answers = [RawAnswer(question_id=a.question_id, type=a.type, value=a.value) for a in body.answers]
    try:
        outcome = SubmissionService(db).submit(
            user=user,
            test_type_id=body.test_type_id,
            answers=answers,
            time_taken=body.time_taken,
        )
    except UnknownTestType as e:
        raise HTTPException(status_code=404, detail="test type not found") from e
    except LockTimeout as e:
        raise HTTPException(status_code=503, detail="leaderboard busy, try again", headers={"Retry-After": "1"}) from e

    return TestResultResponse(
        id=outcome.result_id,
        test_type_id=outcome.test_type_id,
        test_title=outcome.test_title,
        score=outcome.score,
        accuracy=outcome.accuracy,
        percentile=outcome.percentile,
        iq_score=outcome.iq_score,
        duration=outcome.duration,
        correct_count=outcome.correct_count,
        questions_completed=outcome.questions_completed,
        completed_at=outcome.completed_at,
    )
