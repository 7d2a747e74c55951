from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class TestTypeStats(BaseModel):
    questions_count: int
    time_limit: str
    time_limit_seconds: int


class TestTypePublic(BaseModel):
    id: str
    title: str
    description: str
    is_comprehensive: bool
    stats: TestTypeStats


class QuestionPublic(BaseModel):
    id: int
    type: str
    category: str | None = None
    text: str
    options: list[str] = Field(default_factory=list)
    memorization_time: int | None = None
    pairs: list[list[str]] = Field(default_factory=list)
    missing_indices: list[list[int]] = Field(default_factory=list)
    weight: int


class TestStartResponse(BaseModel):
    test_type_id: str
    time_limit_seconds: int
    started_at: datetime
    questions: list[QuestionPublic]


class SubmitAnswer(BaseModel):
    question_id: int
    type: str
    # Option index, text, or slot -> word map depending on `type`.
    value: Any = None


class SubmitRequest(BaseModel):
    test_type_id: str
    answers: list[SubmitAnswer]
    time_taken: float | None = Field(default=None, description="seconds")


class TestResultResponse(BaseModel):
    id: int
    test_type_id: str
    test_title: str
    score: int
    accuracy: float
    percentile: float
    iq_score: int | None = None
    duration: str
    correct_count: int
    questions_completed: int
    completed_at: datetime
