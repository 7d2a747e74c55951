import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class LeaderboardEntry(Base):
    __tablename__ = "leaderboard_entries"
    __table_args__ = (UniqueConstraint("user_id", "test_type_id", name="uq_leaderboard_user_test_type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    test_type_id: Mapped[str] = mapped_column(String(50), ForeignKey("test_types.id"), index=True)

    # Best score so far; never decreases.
    score: Mapped[int] = mapped_column(Integer, default=0, index=True)
    rank: Mapped[int] = mapped_column(Integer, default=0)
    percentile: Mapped[float] = mapped_column(Float, default=0.0)
    tests_completed: Mapped[int] = mapped_column(Integer, default=0)

    best_time: Mapped[str | None] = mapped_column(String(50), nullable=True)
    average_time: Mapped[str | None] = mapped_column(String(50), nullable=True)

    iq_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
