from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from app.models.question import DEFAULT_WEIGHT, MAX_WEIGHT, MIN_WEIGHT
from app.services.answers import QuestionLike, SubmittedAnswer, is_correct


log = logging.getLogger(__name__)

MAX_TIME_BONUS = 0.1


@dataclass(frozen=True)
class ScoringResult:
    score: int
    accuracy: float
    correct_count: int
    answered_count: int
    time_factor: float
    outcomes: dict[int, bool] = field(default_factory=dict)


def normalize_weight(weight) -> int:
    """Coerce a bank weight onto the canonical integer scale [2, 8]."""

    if weight is None or isinstance(weight, bool):
        return DEFAULT_WEIGHT
    try:
        w = int(round(float(weight)))
    except (TypeError, ValueError):
        return DEFAULT_WEIGHT
    return max(MIN_WEIGHT, min(MAX_WEIGHT, w))


def time_factor(time_taken: float, time_limit: float) -> float:
    """Linear speed bonus: 1.1 at zero elapsed time, 1.0 from 50% of the limit on.

    Finishing at or past the limit is never penalised below 1.0.
    """

    if not time_limit or time_limit <= 0:
        return 1.0
    ratio = max(0.0, float(time_taken)) / float(time_limit)
    return max(1.0, min(1.0 + MAX_TIME_BONUS, 1.1 - 0.2 * ratio))


def compute_score(
    answers: Iterable[SubmittedAnswer],
    questions: Iterable[QuestionLike],
    canonical_answers: Mapping[int, str],
    weights: Mapping[int, int],
    time_taken: float,
    time_limit: float,
) -> ScoringResult:
    """Weighted, time-adjusted score over the answered questions.

    Answers that reference a question missing from `questions` are skipped and
    count toward neither numerator nor denominator. Only the first answer per
    question id is scored. The score is not capped at 100.
    """

    qmap = {q.id: q for q in questions}

    total_points = 0
    correct_points = 0
    correct_count = 0
    outcomes: dict[int, bool] = {}

    for answer in answers:
        question = qmap.get(answer.question_id)
        if question is None:
            log.info("answer for unknown question skipped: question_id=%s", answer.question_id)
            continue
        if answer.question_id in outcomes:
            continue

        points = int(round(normalize_weight(weights.get(question.id)) * 100))
        total_points += points

        declared = str(answer.type or "").strip()
        actual = str(getattr(question.type, "value", question.type) or "").strip()
        if declared != actual:
            log.warning(
                "answer type mismatch: question_id=%s declared=%r actual=%r", question.id, declared, actual
            )
            ok = False
        else:
            ok = is_correct(question, answer.value, canonical_answers.get(question.id))

        outcomes[question.id] = ok
        if ok:
            correct_points += points
            correct_count += 1

    factor = time_factor(time_taken, time_limit)
    answered = len(outcomes)

    score = int(round(100 * correct_points / total_points * factor)) if total_points > 0 else 0
    accuracy = 100.0 * correct_count / answered if answered > 0 else 0.0

    return ScoringResult(
        score=score,
        accuracy=accuracy,
        correct_count=correct_count,
        answered_count=answered,
        time_factor=factor,
        outcomes=outcomes,
    )


def format_duration(seconds: float) -> str:
    """Render elapsed seconds as "1h 2m 3s" (hours omitted when zero)."""

    total = int(round(max(0.0, float(seconds or 0))))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"
