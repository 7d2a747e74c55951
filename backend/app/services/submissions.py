from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from app.core.clock import Clock, SystemClock
from app.core.config import settings
from app.core.locks import ranking_lock_key, redis_lock
from app.core.redis_client import get_redis
from app.models.question import Question
from app.models.result import TestResult, TestResultAnswer
from app.models.test_type import TestType
from app.models.user import User
from app.services.answers import SubmittedAnswer, dump_answer_value, parse_answer_value
from app.services.iq import enhanced_iq
from app.services.question_bank import QuestionBank
from app.services.ranking import RankingEngine, is_comprehensive
from app.services.scoring import compute_score, format_duration


log = logging.getLogger(__name__)


class UnknownTestType(LookupError):
    def __init__(self, test_type_id: str):
        super().__init__(f"test type not found: {test_type_id}")
        self.test_type_id = test_type_id


@dataclass(frozen=True)
class RawAnswer:
    question_id: int
    type: str
    value: Any


@dataclass(frozen=True)
class SubmissionOutcome:
    result_id: int
    test_type_id: str
    test_title: str
    score: int
    accuracy: float
    percentile: float
    iq_score: int | None
    duration: str
    correct_count: int
    questions_completed: int
    completed_at: datetime


@dataclass(frozen=True)
class StartedTest:
    test_type: TestType
    questions: list[Question]
    started_at: datetime


def session_key(user_id: str, test_type_id: str) -> str:
    return f"test_session:{user_id}:{test_type_id}"


def resolve_answers(raw_answers: Iterable[RawAnswer], questions: Iterable[Question]) -> list[SubmittedAnswer]:
    """Turn raw payload values into tagged answers using each question's own type.

    Answers to questions the bank does not know keep their declared type; the
    score calculator skips them.
    """

    qtypes = {q.id: q.type for q in questions}
    out: list[SubmittedAnswer] = []
    for a in raw_answers:
        declared = str(a.type or "").strip()
        qtype = qtypes.get(a.question_id, declared)
        out.append(SubmittedAnswer(question_id=a.question_id, type=declared, value=parse_answer_value(qtype, a.value)))
    return out


class SubmissionService:
    def __init__(self, db: Session, *, clock: Clock | None = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.bank = QuestionBank(db)

    def _require_test_type(self, test_type_id: str) -> TestType:
        test_type = self.bank.get_test_type(test_type_id)
        if test_type is None:
            log.warning("test type not found: %s", test_type_id)
            raise UnknownTestType(test_type_id)
        return test_type

    def start(self, *, user: User, test_type_id: str) -> StartedTest:
        test_type = self._require_test_type(test_type_id)
        questions = self.bank.get_questions(test_type.id)
        if test_type.questions_count:
            questions = questions[: int(test_type.questions_count)]

        now = self.clock.now()
        payload = {
            "question_ids": [q.id for q in questions],
            "started_at": now.timestamp(),
        }
        ttl = int(test_type.time_limit_seconds or 0) + int(settings.test_session_grace_seconds)
        get_redis().set(session_key(str(user.id), test_type.id), json.dumps(payload), ex=max(60, ttl))

        return StartedTest(test_type=test_type, questions=questions, started_at=now)

    def _resolve_time_taken(self, *, user: User, test_type: TestType, time_taken: float | None) -> float:
        if time_taken is not None:
            return max(0.0, float(time_taken))

        raw = get_redis().get(session_key(str(user.id), test_type.id))
        if raw:
            try:
                started_at = float(json.loads(raw).get("started_at") or 0)
            except (TypeError, ValueError, AttributeError):
                log.warning("corrupt test session ignored: user_id=%s test_type=%s", user.id, test_type.id)
                started_at = 0.0
            if started_at > 0:
                return max(0.0, self.clock.now().timestamp() - started_at)

        # No timing evidence: score as if the full time was used.
        return float(test_type.time_limit_seconds or 0)

    def submit(
        self,
        *,
        user: User,
        test_type_id: str,
        answers: Iterable[RawAnswer],
        time_taken: float | None = None,
    ) -> SubmissionOutcome:
        test_type = self._require_test_type(test_type_id)
        questions = self.bank.get_questions(test_type.id)
        canonical = self.bank.get_canonical_answers(test_type.id)
        weights = self.bank.get_weights(test_type.id)

        elapsed = self._resolve_time_taken(user=user, test_type=test_type, time_taken=time_taken)
        submitted = resolve_answers(answers, questions)
        scoring = compute_score(
            submitted,
            questions,
            canonical,
            weights,
            elapsed,
            float(test_type.time_limit_seconds or 0),
        )
        duration = format_duration(elapsed)
        completed_at = self.clock.now()

        with redis_lock(ranking_lock_key(test_type.id)):
            try:
                result = TestResult(
                    user_id=user.id,
                    test_type_id=test_type.id,
                    score=scoring.score,
                    accuracy=scoring.accuracy,
                    correct_count=scoring.correct_count,
                    questions_completed=scoring.answered_count,
                    time_taken_seconds=elapsed,
                    duration=duration,
                    completed_at=completed_at,
                )
                self.db.add(result)
                self.db.flush()

                written: set[int] = set()
                for a in submitted:
                    if a.question_id not in scoring.outcomes or a.question_id in written:
                        continue
                    written.add(a.question_id)
                    self.db.add(
                        TestResultAnswer(
                            test_result_id=result.id,
                            question_id=a.question_id,
                            type=a.type,
                            user_answer=dump_answer_value(a.value),
                            is_correct=scoring.outcomes[a.question_id],
                        )
                    )
                self.db.flush()

                entry = RankingEngine(self.db, clock=self.clock).record_submission(
                    user_id=user.id,
                    test_type=test_type,
                    score=scoring.score,
                    duration=duration,
                )

                result.percentile = float(entry.percentile)
                if is_comprehensive(test_type.id):
                    result.iq_score = enhanced_iq(
                        percentile=float(entry.percentile),
                        score=float(scoring.score),
                        accuracy=float(scoring.accuracy),
                        time_taken=elapsed,
                        time_limit=float(test_type.time_limit_seconds or 0),
                    )

                self.db.commit()
            except Exception:
                self.db.rollback()
                log.exception("submission failed: user_id=%s test_type=%s", user.id, test_type.id)
                raise

        try:
            get_redis().delete(session_key(str(user.id), test_type.id))
        except RedisError:
            # The result is committed; a stale session only expires later.
            log.warning("test session cleanup failed: user_id=%s test_type=%s", user.id, test_type.id, exc_info=True)

        log.info(
            "test submitted: user_id=%s test_type=%s score=%s accuracy=%.1f correct=%s/%s duration=%s",
            user.id,
            test_type.id,
            scoring.score,
            scoring.accuracy,
            scoring.correct_count,
            scoring.answered_count,
            duration,
        )

        return SubmissionOutcome(
            result_id=int(result.id),
            test_type_id=test_type.id,
            test_title=test_type.title,
            score=scoring.score,
            accuracy=scoring.accuracy,
            percentile=float(result.percentile),
            iq_score=result.iq_score,
            duration=duration,
            correct_count=scoring.correct_count,
            questions_completed=scoring.answered_count,
            completed_at=completed_at,
        )
