from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.leaderboard import LeaderboardEntry
from app.models.user import User
from app.schemas.leaderboard import (
    GlobalLeaderboardEntryOut,
    LeaderboardEntryOut,
    TestTypeRankingOut,
    UserRankingOut,
)
from app.services.global_ranking import GlobalRanker, TestTypeStanding
from app.services.question_bank import QuestionBank
from app.services.ranking import is_comprehensive

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


def _limit(limit: int | None) -> int:
    eff = int(limit if limit is not None else settings.leaderboard_default_limit)
    return max(1, min(eff, int(settings.leaderboard_max_limit)))


def _standing_out(s: TestTypeStanding) -> TestTypeRankingOut:
    return TestTypeRankingOut(
        rank=s.rank,
        score=s.score,
        percentile=s.percentile,
        total_tests=s.tests_completed,
        iq_score=s.iq_score,
    )


@router.get("/global", response_model=list[GlobalLeaderboardEntryOut])
def global_leaderboard(
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    rows = GlobalRanker(db).leaderboard(limit=_limit(limit))
    return [
        GlobalLeaderboardEntryOut(
            rank=r.rank,
            username=r.username,
            score=r.score,
            percentile=r.percentile,
            tests_completed=r.tests_completed,
            iq_score=r.iq_score,
            country=r.country,
            test_results={k: _standing_out(v) for k, v in r.test_results.items()},
        )
        for r in rows
    ]


@router.get("/test-type/{test_type_id}", response_model=list[LeaderboardEntryOut])
def test_type_leaderboard(
    test_type_id: str,
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    if QuestionBank(db).get_test_type(test_type_id) is None:
        raise HTTPException(status_code=404, detail="test type not found")

    show_iq = is_comprehensive(test_type_id)
    rows = db.execute(
        select(LeaderboardEntry, User)
        .join(User, User.id == LeaderboardEntry.user_id)
        .where(LeaderboardEntry.test_type_id == test_type_id)
        .order_by(LeaderboardEntry.rank.asc(), LeaderboardEntry.id.asc())
        .limit(_limit(limit))
    ).all()

    return [
        LeaderboardEntryOut(
            rank=int(e.rank or 0),
            username=u.username,
            score=int(e.score or 0),
            percentile=float(e.percentile or 0.0),
            tests_completed=int(e.tests_completed or 0),
            best_time=e.best_time,
            average_time=e.average_time,
            iq_score=e.iq_score if show_iq else None,
            country=u.country,
        )
        for e, u in rows
    ]


@router.get("/user-ranking", response_model=UserRankingOut)
def user_ranking(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    s = GlobalRanker(db).user_ranking(user)
    return UserRankingOut(
        user_id=str(s.user_id),
        username=s.username,
        global_rank=s.rank,
        global_percentile=s.percentile,
        iq_score=s.iq_score,
        test_results={k: _standing_out(v) for k, v in s.test_results.items()},
    )
