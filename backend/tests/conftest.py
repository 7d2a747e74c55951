import sys
from pathlib import Path
import uuid
import time

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db import session as session_module
from app.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
import app.models  # noqa: F401
from app.core.security import create_access_token
from app.models.question import Question, QuestionType
from app.models.user import User, UserRole
from app.services.test_types import ensure_test_types


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        if nx and self._get_entry(key) is not None:
            return None
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def delete(self, key: str):
        existed = self._data.pop(key, None) is not None
        return 1 if existed else 0

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))

    def eval(self, script: str, numkeys: int, *args):
        # Only the lock release script is used: delete KEYS[1] if it holds ARGV[1].
        key, token = args[0], args[numkeys]
        entry = self._get_entry(key)
        if entry is None or entry[0] != token:
            return 0
        self._data.pop(key, None)
        return 1

    def flushall(self):
        self._data.clear()


def _make_engine():
    return create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


# Configure test DB (SQLite in-memory) at import time so all tests importing
# app.db.session.SessionLocal will get the patched version.
_engine = _make_engine()
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Small published bank: enough to exercise every question type through the API.
SEED_QUESTIONS: list[dict] = [
    {
        "test_type_id": "number-logic",
        "type": QuestionType.multiple_choice.value,
        "text": "What comes next: 2, 4, 8, 16, ?",
        "category": "Sequences",
        "options": ["24", "30", "32", "36"],
        "correct_answer": "32",
        "weight": 3,
        "order_index": 1,
    },
    {
        "test_type_id": "number-logic",
        "type": QuestionType.fill_in_gap.value,
        "text": "7 x 8 = ?",
        "category": "Arithmetic",
        "correct_answer": "56",
        "weight": 5,
        "order_index": 2,
    },
    {
        "test_type_id": "memory",
        "type": QuestionType.memory_pair.value,
        "text": "Recall the missing words",
        "category": "Word pairs",
        "correct_answer": "pair-0-word-1:apple,pair-1-word-0:mountain",
        "memorization_time": 20,
        "pairs": [["tree", "apple"], ["mountain", "river"]],
        "missing_indices": [[1], [0]],
        "weight": 4,
        "order_index": 1,
    },
    {
        "test_type_id": "mixed",
        "type": QuestionType.multiple_choice.value,
        "text": "Which word is the odd one out?",
        "category": "Verbal",
        "options": ["Oak", "Pine", "Rose", "Birch"],
        "correct_answer": "Rose",
        "weight": 3,
        "order_index": 1,
    },
    {
        "test_type_id": "mixed",
        "type": QuestionType.fill_in_gap.value,
        "text": "Hand is to glove as foot is to ?",
        "category": "Analogies",
        "correct_answer": "Sock",
        "weight": 5,
        "order_index": 2,
    },
]


def seed_catalogue(session_factory) -> None:
    with session_factory() as db:
        ensure_test_types(db)
        if db.scalar(select(Question).limit(1)) is not None:
            return
        for row in SEED_QUESTIONS:
            db.add(Question(**row))
        db.commit()


seed_catalogue(session_module.SessionLocal)


# Stub Redis at import time (test sessions + ranking locks).
_mem_redis = _MemoryRedis()
import app.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import app.core.locks as locks_module
locks_module.get_redis = lambda: _mem_redis

import app.services.submissions as submissions_module
submissions_module.get_redis = lambda: _mem_redis

import app.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis


@pytest.fixture(scope="session")
def client():
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def mem_redis():
    return _mem_redis


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture()
def isolated_db():
    """A private, freshly seeded database for tests that assert on whole leaderboards."""

    engine = _make_engine()
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    seed_catalogue(factory)
    with factory() as session:
        yield session
    engine.dispose()


def _new_user(db, *, role: UserRole = UserRole.user, country: str | None = None) -> User:
    u = User(username=f"test_{uuid.uuid4().hex[:8]}", role=role, country=country)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture()
def make_user():
    def _make(db=None, **kwargs) -> User:
        if db is not None:
            return _new_user(db, **kwargs)
        with session_module.SessionLocal() as s:
            u = _new_user(s, **kwargs)
            s.expunge(u)
            return u

    return _make


def headers_for(user: User) -> dict[str, str]:
    token = create_access_token(user_id=str(user.id), role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def user(make_user):
    return make_user()


@pytest.fixture()
def auth_headers(user):
    return headers_for(user)


@pytest.fixture()
def admin_headers(make_user):
    return headers_for(make_user(role=UserRole.admin))


@pytest.fixture()
def headers():
    return headers_for
