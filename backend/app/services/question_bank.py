from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.question import Question
from app.models.test_type import TestType
from app.services.scoring import normalize_weight


class QuestionBank:
    """Read-only view of the published questions for each test type."""

    def __init__(self, db: Session):
        self.db = db

    def list_test_types(self) -> list[TestType]:
        return list(self.db.scalars(select(TestType).order_by(TestType.order_index, TestType.id)))

    def get_test_type(self, test_type_id: str) -> TestType | None:
        return self.db.scalar(select(TestType).where(TestType.id == str(test_type_id)))

    def get_questions(self, test_type_id: str) -> list[Question]:
        return list(
            self.db.scalars(
                select(Question)
                .where(Question.test_type_id == str(test_type_id))
                .order_by(Question.order_index, Question.id)
            )
        )

    def get_canonical_answers(self, test_type_id: str) -> dict[int, str]:
        return {q.id: str(q.correct_answer or "") for q in self.get_questions(test_type_id)}

    def get_weights(self, test_type_id: str) -> dict[int, int]:
        return {q.id: normalize_weight(q.weight) for q in self.get_questions(test_type_id)}
