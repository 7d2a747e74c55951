import enum

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class QuestionType(str, enum.Enum):
    multiple_choice = "multiple-choice"
    fill_in_gap = "fill-in-gap"
    memory_pair = "memory-pair"


DEFAULT_WEIGHT = 3
MIN_WEIGHT = 2
MAX_WEIGHT = 8


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    test_type_id: Mapped[str] = mapped_column(String(50), ForeignKey("test_types.id"), index=True)

    # Plain string so the bank can carry types this engine does not know yet.
    type: Mapped[str] = mapped_column(String(50), index=True)
    text: Mapped[str] = mapped_column(String(1000), default="")
    category: Mapped[str | None] = mapped_column(String(200), nullable=True)

    options: Mapped[list | None] = mapped_column(JSON, nullable=True)
    correct_answer: Mapped[str] = mapped_column(String, default="")
    weight: Mapped[int] = mapped_column(Integer, default=DEFAULT_WEIGHT)

    memorization_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pairs: Mapped[list | None] = mapped_column(JSON, nullable=True)
    missing_indices: Mapped[list | None] = mapped_column(JSON, nullable=True)

    order_index: Mapped[int] = mapped_column(Integer, default=0)
