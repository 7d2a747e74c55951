from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from app.core.clock import FixedClock
from app.models.leaderboard import LeaderboardEntry
from app.models.result import TestResult
from app.services.question_bank import QuestionBank
from app.services.iq import enhanced_iq
from app.services.ranking import (
    RankingEngine,
    assign_ranks,
    attempt_counts,
    best_attempts,
    is_comprehensive,
    latest_attempts,
    percentile_for_rank,
)


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _entry(score, name):
    return SimpleNamespace(score=score, rank=0, percentile=0.0, name=name)


def test_assign_ranks_dense_with_stable_ties():
    entries = [_entry(80, "b"), _entry(70, "d"), _entry(90, "a"), _entry(80, "c")]
    ranked = assign_ranks(entries)
    assert [e.name for e in ranked] == ["a", "b", "c", "d"]
    assert [e.rank for e in ranked] == [1, 2, 3, 4]
    assert [e.percentile for e in ranked] == [75.0, 50.0, 25.0, 0.0]


def test_single_entry_is_rank_one_with_zero_percentile():
    ranked = assign_ranks([_entry(10, "only")])
    assert ranked[0].rank == 1
    assert ranked[0].percentile == 0.0


def test_percentile_for_rank_handles_empty_board():
    assert percentile_for_rank(1, 0) == 0.0
    assert percentile_for_rank(1, 4) == 75.0


def test_is_comprehensive():
    assert is_comprehensive("mixed") is True
    assert is_comprehensive("memory") is False


def _result(db, user, test_type_id, score, taken, completed_at=T0, accuracy=50.0):
    r = TestResult(
        user_id=user.id,
        test_type_id=test_type_id,
        score=score,
        accuracy=accuracy,
        time_taken_seconds=taken,
        duration=f"{int(taken) // 60}m {int(taken) % 60}s",
        completed_at=completed_at,
    )
    db.add(r)
    db.flush()
    return r


def test_best_attempts_prefers_score_then_time_then_row(isolated_db, make_user):
    db = isolated_db
    u1, u2 = make_user(db), make_user(db)
    _result(db, u1, "memory", 80, 300)
    b = _result(db, u1, "memory", 80, 200)
    _result(db, u1, "memory", 80, 200)
    _result(db, u1, "memory", 70, 10)
    d = _result(db, u2, "memory", 50, 10)
    _result(db, u2, "word-logic", 99, 10)
    db.commit()

    best = best_attempts(db, "memory")
    assert set(best) == {u1.id, u2.id}
    assert best[u1.id].id == b.id
    assert best[u2.id].id == d.id
    assert attempt_counts(db, "memory") == {u1.id: 4, u2.id: 1}


def test_latest_attempts_orders_by_completion_then_row(isolated_db, make_user):
    db = isolated_db
    u = make_user(db)
    _result(db, u, "memory", 90, 60, completed_at=T0)
    _result(db, u, "memory", 10, 120, completed_at=T0 + timedelta(days=1))
    last = _result(db, u, "memory", 20, 180, completed_at=T0 + timedelta(days=1))
    db.commit()

    assert latest_attempts(db, "memory")[u.id].id == last.id


def _record(db, engine, user, test_type_id, score, duration="5m 0s"):
    test_type = QuestionBank(db).get_test_type(test_type_id)
    entry = engine.record_submission(user_id=user.id, test_type=test_type, score=score, duration=duration)
    db.commit()
    return entry


def test_record_submission_ranks_board(isolated_db, make_user):
    db = isolated_db
    engine = RankingEngine(db, clock=FixedClock(T0))
    users = [make_user(db) for _ in range(4)]
    for u, score in zip(users, [90, 80, 80, 70]):
        _record(db, engine, u, "number-logic", score)

    rows = {e.user_id: e for e in db.scalars(select(LeaderboardEntry).where(LeaderboardEntry.test_type_id == "number-logic"))}
    assert [rows[u.id].rank for u in users] == [1, 2, 3, 4]
    assert [rows[u.id].percentile for u in users] == [75.0, 50.0, 25.0, 0.0]
    assert all(e.iq_score is None for e in rows.values())


def test_ranks_are_a_permutation_after_every_write(isolated_db, make_user):
    db = isolated_db
    engine = RankingEngine(db, clock=FixedClock(T0))
    users = [make_user(db) for _ in range(5)]
    scores = [40, 95, 40, 10, 60, 100, 40]
    for i, score in enumerate(scores):
        _record(db, engine, users[i % len(users)], "memory", score)
        board = list(db.scalars(select(LeaderboardEntry).where(LeaderboardEntry.test_type_id == "memory")))
        assert sorted(e.rank for e in board) == list(range(1, len(board) + 1))
        by_rank = sorted(board, key=lambda e: e.rank)
        assert [e.score for e in by_rank] == sorted((e.score for e in by_rank), reverse=True)


def test_best_score_never_decreases(isolated_db, make_user):
    db = isolated_db
    clock = FixedClock(T0)
    engine = RankingEngine(db, clock=clock)
    u = make_user(db)

    e = _record(db, engine, u, "word-logic", 70, duration="10m 0s")
    assert (e.score, e.tests_completed, e.best_time, e.average_time) == (70, 1, "10m 0s", "10m 0s")

    clock.advance(60)
    e = _record(db, engine, u, "word-logic", 50, duration="4m 0s")
    assert e.score == 70
    assert e.tests_completed == 2
    assert e.best_time == "10m 0s"
    assert e.average_time == "4m 0s"

    clock.advance(60)
    e = _record(db, engine, u, "word-logic", 70, duration="3m 0s")
    assert e.score == 70
    assert e.best_time == "10m 0s"

    clock.advance(60)
    e = _record(db, engine, u, "word-logic", 85, duration="6m 0s")
    assert e.score == 85
    assert e.tests_completed == 4
    assert e.best_time == "6m 0s"


def test_comprehensive_entries_carry_iq(isolated_db, make_user):
    db = isolated_db
    engine = RankingEngine(db, clock=FixedClock(T0))
    a, b = make_user(db), make_user(db)
    _record(db, engine, a, "mixed", 90)
    _record(db, engine, b, "mixed", 40)

    board = list(db.scalars(select(LeaderboardEntry).where(LeaderboardEntry.test_type_id == "mixed")))
    assert len(board) == 2
    assert all(e.iq_score is not None and 70 <= e.iq_score <= 160 for e in board)
    top = next(e for e in board if e.user_id == a.id)
    low = next(e for e in board if e.user_id == b.id)
    assert top.iq_score > low.iq_score


def test_rebuild_rederives_from_results(isolated_db, make_user):
    db = isolated_db
    a, b = make_user(db), make_user(db)
    for user, score, taken in [(a, 60, 900), (a, 75, 1000), (b, 90, 1200)]:
        db.add(
            TestResult(
                user_id=user.id,
                test_type_id="number-logic",
                score=score,
                accuracy=50.0,
                time_taken_seconds=taken,
                duration=f"{taken // 60}m 0s",
                completed_at=T0,
            )
        )
    db.commit()

    test_type = QuestionBank(db).get_test_type("number-logic")
    ranked = RankingEngine(db, clock=FixedClock(T0)).rebuild(test_type)
    db.commit()

    assert [(e.user_id, e.score, e.rank) for e in ranked] == [(b.id, 90, 1), (a.id, 75, 2)]
    entry_a = next(e for e in ranked if e.user_id == a.id)
    assert entry_a.tests_completed == 2
    assert entry_a.best_time == "16m 0s"

    # Running it again changes nothing.
    again = RankingEngine(db, clock=FixedClock(T0)).rebuild(test_type)
    assert [(e.user_id, e.score, e.rank, e.tests_completed) for e in again] == [
        (b.id, 90, 1, 1),
        (a.id, 75, 2, 2),
    ]


def test_rebuild_keeps_higher_stored_score(isolated_db, make_user):
    db = isolated_db
    u = make_user(db)
    db.add(LeaderboardEntry(user_id=u.id, test_type_id="memory", score=95, tests_completed=3, last_updated=T0))
    db.add(TestResult(user_id=u.id, test_type_id="memory", score=40, time_taken_seconds=100, duration="1m 40s", completed_at=T0))
    db.commit()

    ranked = RankingEngine(db).rebuild(QuestionBank(db).get_test_type("memory"))
    assert ranked[0].score == 95
    assert ranked[0].tests_completed == 3


@pytest.mark.parametrize("test_type_id", ["number-logic", "word-logic", "memory"])
def test_non_comprehensive_rebuild_clears_iq(isolated_db, make_user, test_type_id):
    db = isolated_db
    u = make_user(db)
    db.add(LeaderboardEntry(user_id=u.id, test_type_id=test_type_id, score=50, iq_score=123, last_updated=T0))
    db.commit()

    ranked = RankingEngine(db).rebuild(QuestionBank(db).get_test_type(test_type_id))
    assert ranked[0].iq_score is None


def test_rebuild_average_time_is_latest_duration(isolated_db, make_user):
    db = isolated_db
    u = make_user(db)
    _result(db, u, "word-logic", 90, 1200, completed_at=T0)
    _result(db, u, "word-logic", 40, 120, completed_at=T0 + timedelta(days=1))
    db.commit()

    ranked = RankingEngine(db, clock=FixedClock(T0)).rebuild(QuestionBank(db).get_test_type("word-logic"))
    entry = ranked[0]
    assert entry.score == 90
    assert entry.best_time == "20m 0s"
    assert entry.average_time == "2m 0s"
    assert entry.tests_completed == 2


def test_comprehensive_iq_uses_each_users_best_attempt(isolated_db, make_user):
    db = isolated_db
    a, b = make_user(db), make_user(db)
    _result(db, a, "mixed", 95, 600, accuracy=100.0)
    _result(db, a, "mixed", 30, 100, accuracy=20.0, completed_at=T0 + timedelta(hours=1))
    _result(db, b, "mixed", 60, 900, accuracy=50.0)
    db.commit()

    test_type = QuestionBank(db).get_test_type("mixed")
    ranked = RankingEngine(db, clock=FixedClock(T0)).rebuild(test_type)
    top = ranked[0]
    assert top.user_id == a.id
    assert top.iq_score == enhanced_iq(
        percentile=top.percentile,
        score=95.0,
        accuracy=100.0,
        time_taken=600.0,
        time_limit=float(test_type.time_limit_seconds),
    )
