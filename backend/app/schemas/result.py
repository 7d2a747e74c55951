from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AnswerOut(BaseModel):
    question_id: int
    type: str
    user_answer: str
    is_correct: bool


class ResultSummary(BaseModel):
    id: int
    test_type_id: str
    test_title: str
    score: int
    percentile: float
    better_than: str
    accuracy: float
    iq_score: int | None = None
    duration: str
    questions_completed: int
    completed_at: datetime


class ResultDetail(ResultSummary):
    correct_count: int
    answers: list[AnswerOut]


class ResultListResponse(BaseModel):
    items: list[ResultSummary]
