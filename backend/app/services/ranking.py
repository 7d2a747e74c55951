from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable, Protocol, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.clock import Clock, SystemClock
from app.core.config import settings
from app.models.leaderboard import LeaderboardEntry
from app.models.result import TestResult
from app.models.test_type import TestType
from app.services.iq import enhanced_iq
from app.services.leaderboard_store import LeaderboardStore


log = logging.getLogger(__name__)


class Rankable(Protocol):
    score: int
    rank: int
    percentile: float


R = TypeVar("R", bound=Rankable)


def percentile_for_rank(rank: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return 100.0 * (1.0 - float(rank) / float(total))


def assign_ranks(entries: Iterable[R]) -> list[R]:
    """Sort by score descending and give every entry its position as rank.

    Ranks are 1..N with no sharing: equal scores keep their input order
    (sorted() is stable), so callers must pass entries in a deterministic order.
    """

    ordered = sorted(entries, key=lambda e: -int(e.score or 0))
    total = len(ordered)
    for pos, entry in enumerate(ordered):
        entry.rank = pos + 1
        entry.percentile = percentile_for_rank(pos + 1, total)
    return ordered


def is_comprehensive(test_type_id: str) -> bool:
    return str(test_type_id) == str(settings.comprehensive_test_type)


def _first_result_per_user(test_type_id: str, *order_by: Any):
    rn = func.row_number().over(partition_by=TestResult.user_id, order_by=list(order_by)).label("rn")
    ranked = (
        select(TestResult.id.label("id"), rn)
        .where(TestResult.test_type_id == str(test_type_id))
        .subquery()
    )
    return select(TestResult).join(ranked, TestResult.id == ranked.c.id).where(ranked.c.rn == 1)


def best_attempts(db: Session, test_type_id: str) -> dict[uuid.UUID, TestResult]:
    """Highest-scoring result per user; faster time, then earlier row, wins ties."""

    stmt = _first_result_per_user(
        test_type_id,
        TestResult.score.desc(),
        TestResult.time_taken_seconds.asc(),
        TestResult.id.asc(),
    )
    return {r.user_id: r for r in db.scalars(stmt)}


def latest_attempts(db: Session, test_type_id: str) -> dict[uuid.UUID, TestResult]:
    stmt = _first_result_per_user(test_type_id, TestResult.completed_at.desc(), TestResult.id.desc())
    return {r.user_id: r for r in db.scalars(stmt)}


def attempt_counts(db: Session, test_type_id: str) -> dict[uuid.UUID, int]:
    rows = db.execute(
        select(TestResult.user_id, func.count(TestResult.id))
        .where(TestResult.test_type_id == str(test_type_id))
        .group_by(TestResult.user_id)
    )
    return {user_id: int(n) for user_id, n in rows}


class RankingEngine:
    """Per-test-type leaderboard maintenance.

    Callers own the transaction and must hold the per-type ranking lock while
    calling `record_submission` or `rebuild`; nothing here commits.
    """

    def __init__(self, db: Session, *, clock: Clock | None = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.store = LeaderboardStore(db)

    def upsert(self, *, user_id: uuid.UUID, test_type_id: str, score: int, duration: str) -> LeaderboardEntry:
        now = self.clock.now()
        entry = self.store.get(user_id, test_type_id)
        if entry is None:
            entry = LeaderboardEntry(
                user_id=user_id,
                test_type_id=str(test_type_id),
                score=int(score),
                rank=0,
                percentile=0.0,
                tests_completed=1,
                best_time=duration,
                average_time=duration,
                last_updated=now,
            )
            return self.store.upsert(entry)

        is_new_best = int(score) > int(entry.score or 0)
        if is_new_best or not entry.best_time:
            entry.best_time = duration
        entry.score = max(int(entry.score or 0), int(score))
        entry.tests_completed = int(entry.tests_completed or 0) + 1
        # Latest duration, not a running mean.
        entry.average_time = duration
        entry.last_updated = now
        return self.store.upsert(entry)

    def rerank(self, test_type_id: str) -> list[LeaderboardEntry]:
        ranked = assign_ranks(self.store.list_by_test_type(test_type_id))
        self.db.flush()
        return ranked

    def refresh_iq_scores(self, test_type: TestType, entries: Sequence[LeaderboardEntry]) -> None:
        if not is_comprehensive(test_type.id):
            for e in entries:
                e.iq_score = None
            return

        best = best_attempts(self.db, test_type.id)
        limit = float(test_type.time_limit_seconds or 0)

        for e in entries:
            attempt = best.get(e.user_id)
            accuracy = float(attempt.accuracy) if attempt is not None else 0.0
            taken = float(attempt.time_taken_seconds) if attempt is not None else limit
            e.iq_score = enhanced_iq(
                percentile=float(e.percentile),
                score=float(e.score),
                accuracy=accuracy,
                time_taken=taken,
                time_limit=limit,
            )
        self.db.flush()

    def record_submission(
        self,
        *,
        user_id: uuid.UUID,
        test_type: TestType,
        score: int,
        duration: str,
    ) -> LeaderboardEntry:
        self.store.lock_test_type(test_type.id)
        entry = self.upsert(user_id=user_id, test_type_id=test_type.id, score=score, duration=duration)
        ranked = self.rerank(test_type.id)
        self.refresh_iq_scores(test_type, ranked)
        log.info(
            "leaderboard updated: test_type=%s user_id=%s score=%s rank=%s/%s",
            test_type.id,
            user_id,
            entry.score,
            entry.rank,
            len(ranked),
        )
        return entry

    def rebuild(self, test_type: TestType) -> list[LeaderboardEntry]:
        """Re-derive best score and attempt counts from stored results, then re-rank."""

        self.store.lock_test_type(test_type.id)
        best = best_attempts(self.db, test_type.id)
        latest = latest_attempts(self.db, test_type.id)
        counts = attempt_counts(self.db, test_type.id)

        for user_id, attempt in best.items():
            entry = self.store.get(user_id, test_type.id)
            if entry is None:
                entry = LeaderboardEntry(
                    user_id=user_id,
                    test_type_id=test_type.id,
                    score=int(attempt.score),
                    tests_completed=0,
                    best_time=attempt.duration,
                    last_updated=self.clock.now(),
                )
            # Best-of semantics: a rebuild never lowers a stored score.
            if int(attempt.score) > int(entry.score or 0):
                entry.score = int(attempt.score)
                entry.best_time = attempt.duration
            entry.average_time = latest[user_id].duration
            entry.tests_completed = max(int(entry.tests_completed or 0), counts.get(user_id, 0))
            self.store.upsert(entry)

        ranked = self.rerank(test_type.id)
        self.refresh_iq_scores(test_type, ranked)
        return ranked
