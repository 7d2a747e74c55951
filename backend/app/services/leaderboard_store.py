from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.leaderboard import LeaderboardEntry
from app.models.test_type import TestType


class LeaderboardStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: uuid.UUID, test_type_id: str) -> LeaderboardEntry | None:
        return self.db.scalar(
            select(LeaderboardEntry).where(
                LeaderboardEntry.user_id == user_id,
                LeaderboardEntry.test_type_id == str(test_type_id),
            )
        )

    def list_by_test_type(self, test_type_id: str) -> list[LeaderboardEntry]:
        # Ordered by id: the input order ties are broken on.
        return list(
            self.db.scalars(
                select(LeaderboardEntry)
                .where(LeaderboardEntry.test_type_id == str(test_type_id))
                .order_by(LeaderboardEntry.id)
            )
        )

    def list_by_user(self, user_id: uuid.UUID) -> list[LeaderboardEntry]:
        return list(
            self.db.scalars(
                select(LeaderboardEntry).where(LeaderboardEntry.user_id == user_id).order_by(LeaderboardEntry.test_type_id)
            )
        )

    def upsert(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def lock_test_type(self, test_type_id: str) -> None:
        """Row lock on the test type for the rest of the transaction (no-op on SQLite)."""

        self.db.execute(select(TestType.id).where(TestType.id == str(test_type_id)).with_for_update())
