from __future__ import annotations

from pydantic import BaseModel, Field


class LeaderboardEntryOut(BaseModel):
    rank: int
    username: str
    score: int
    percentile: float
    tests_completed: int
    best_time: str | None = None
    average_time: str | None = None
    iq_score: int | None = None
    country: str | None = None


class TestTypeRankingOut(BaseModel):
    rank: int
    score: int
    percentile: float
    total_tests: int
    iq_score: int | None = None


class GlobalLeaderboardEntryOut(BaseModel):
    rank: int
    username: str
    score: int
    percentile: float
    tests_completed: int
    iq_score: int
    country: str | None = None
    test_results: dict[str, TestTypeRankingOut] = Field(default_factory=dict)


class UserRankingOut(BaseModel):
    user_id: str
    username: str
    global_rank: int
    global_percentile: float
    iq_score: int
    test_results: dict[str, TestTypeRankingOut] = Field(default_factory=dict)
