from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.leaderboard import LeaderboardEntry
from app.models.user import User
from app.services.iq import base_iq
from app.services.ranking import is_comprehensive, percentile_for_rank


@dataclass(frozen=True)
class TestTypeStanding:
    test_type_id: str
    rank: int
    score: int
    percentile: float
    tests_completed: int
    iq_score: int | None = None


@dataclass(frozen=True)
class GlobalStanding:
    user_id: uuid.UUID
    username: str
    country: str | None
    rank: int
    percentile: float
    average_score: float
    tests_completed: int
    iq_score: int
    test_results: dict[str, TestTypeStanding] = field(default_factory=dict)

    @property
    def score(self) -> int:
        return int(round(self.average_score))


def global_rank(user_average: float, averages: Iterable[float]) -> int:
    """1 + number of users whose average is strictly higher."""

    return 1 + sum(1 for a in averages if float(a) > float(user_average))


class GlobalRanker:
    """Ranks users by their mean leaderboard score across all test types."""

    def __init__(self, db: Session):
        self.db = db

    def _averages(self) -> dict[uuid.UUID, tuple[float, int]]:
        rows = self.db.execute(
            select(
                LeaderboardEntry.user_id,
                func.avg(LeaderboardEntry.score),
                func.sum(LeaderboardEntry.tests_completed),
            ).group_by(LeaderboardEntry.user_id)
        ).all()
        return {r[0]: (float(r[1] or 0.0), int(r[2] or 0)) for r in rows}

    def _total_users(self) -> int:
        return int(self.db.scalar(select(func.count(User.id))) or 0)

    def _standings_for(self, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, dict[str, TestTypeStanding]]:
        if not user_ids:
            return {}
        entries = self.db.scalars(select(LeaderboardEntry).where(LeaderboardEntry.user_id.in_(user_ids)))
        out: dict[uuid.UUID, dict[str, TestTypeStanding]] = {}
        for e in entries:
            out.setdefault(e.user_id, {})[e.test_type_id] = TestTypeStanding(
                test_type_id=e.test_type_id,
                rank=int(e.rank or 0),
                score=int(e.score or 0),
                percentile=float(e.percentile or 0.0),
                tests_completed=int(e.tests_completed or 0),
                iq_score=e.iq_score if is_comprehensive(e.test_type_id) else None,
            )
        return out

    @staticmethod
    def _iq_for(percentile: float, standings: dict[str, TestTypeStanding]) -> int:
        for s in standings.values():
            if s.iq_score is not None:
                return int(s.iq_score)
        return base_iq(percentile)

    def user_ranking(self, user: User) -> GlobalStanding:
        averages = self._averages()
        total_users = self._total_users()

        user_average, tests = averages.get(user.id, (0.0, 0))
        rank = global_rank(user_average, (avg for uid, (avg, _) in averages.items() if uid != user.id))
        percentile = percentile_for_rank(rank, total_users)
        standings = self._standings_for([user.id]).get(user.id, {})

        return GlobalStanding(
            user_id=user.id,
            username=user.username,
            country=user.country,
            rank=rank,
            percentile=percentile,
            average_score=user_average,
            tests_completed=tests,
            iq_score=self._iq_for(percentile, standings),
            test_results=standings,
        )

    def leaderboard(self, limit: int = 10) -> list[GlobalStanding]:
        averages = self._averages()
        total_users = self._total_users()

        ordered = sorted(averages.items(), key=lambda kv: (-kv[1][0], str(kv[0])))[: max(0, int(limit))]
        user_ids = [uid for uid, _ in ordered]
        users = {u.id: u for u in self.db.scalars(select(User).where(User.id.in_(user_ids)))} if user_ids else {}
        standings = self._standings_for(user_ids)
        all_averages = [avg for avg, _ in averages.values()]

        out: list[GlobalStanding] = []
        for uid, (avg, tests) in ordered:
            user = users.get(uid)
            rank = global_rank(avg, all_averages)
            percentile = percentile_for_rank(rank, total_users)
            per_type = standings.get(uid, {})
            out.append(
                GlobalStanding(
                    user_id=uid,
                    username=user.username if user is not None else "",
                    country=user.country if user is not None else None,
                    rank=rank,
                    percentile=percentile,
                    average_score=avg,
                    tests_completed=tests,
                    iq_score=self._iq_for(percentile, per_type),
                    test_results=per_type,
                )
            )
        return out
