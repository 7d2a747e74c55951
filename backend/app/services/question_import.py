from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.models.question import Question, QuestionType
from app.models.test_type import TestType
from app.services.answers import parse_memory_canonical
from app.services.scoring import normalize_weight
from app.services.test_types import ensure_test_types


log = logging.getLogger(__name__)

_KNOWN_TYPES = {t.value for t in QuestionType}


@dataclass
class ImportReport:
    created: int = 0
    skipped: int = 0
    removed: int = 0
    errors: list[str] = field(default_factory=list)


def _validate(row: dict[str, Any], known_test_types: set[str]) -> str | None:
    tt = str(row.get("test_type_id") or "").strip()
    if tt not in known_test_types:
        return f"unknown test type {tt!r}"

    qtype = str(row.get("type") or "").strip()
    if qtype not in _KNOWN_TYPES:
        return f"unknown question type {qtype!r}"

    if not str(row.get("text") or "").strip():
        return "text is required"

    answer = str(row.get("correct_answer") or "").strip()
    if not answer:
        return "correct_answer is required"

    if qtype == QuestionType.multiple_choice.value:
        options = row.get("options")
        if not isinstance(options, list) or len(options) < 2:
            return "multiple-choice needs at least two options"
        if answer not in [str(o) for o in options]:
            return "correct_answer must be one of the options"

    if qtype == QuestionType.memory_pair.value:
        if not parse_memory_canonical(answer):
            return "memory-pair correct_answer must look like 'pair-0-word-1:apple,...'"
        if not isinstance(row.get("pairs"), list):
            return "memory-pair needs pairs"

    return None


def import_questions(db: Session, rows: Iterable[dict[str, Any]], *, replace: bool = False) -> ImportReport:
    """Load question bank rows, idempotent on (test_type_id, text).

    With `replace`, existing questions of every test type present in `rows`
    are removed first. Invalid rows are reported and skipped; the valid ones
    are committed together.
    """

    rows = list(rows)
    ensure_test_types(db)

    known = set(db.scalars(select(TestType.id)).all())
    report = ImportReport()

    if replace:
        touched = {str(r.get("test_type_id") or "").strip() for r in rows} & known
        for tt in sorted(touched):
            res = db.execute(delete(Question).where(Question.test_type_id == tt))
            report.removed += int(res.rowcount or 0)
        db.flush()

    existing = {(q.test_type_id, q.text) for q in db.scalars(select(Question))}
    next_order: dict[str, int] = {}

    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            report.errors.append(f"row {i}: expected an object")
            continue
        err = _validate(row, known)
        if err:
            report.errors.append(f"row {i}: {err}")
            continue

        tt = str(row["test_type_id"]).strip()
        text = str(row["text"]).strip()
        if (tt, text) in existing:
            report.skipped += 1
            continue

        if tt not in next_order:
            last = db.scalar(
                select(Question.order_index)
                .where(Question.test_type_id == tt)
                .order_by(Question.order_index.desc())
                .limit(1)
            )
            next_order[tt] = int(last or 0) + 1

        db.add(
            Question(
                test_type_id=tt,
                type=str(row["type"]).strip(),
                text=text,
                category=row.get("category"),
                options=[str(o) for o in row["options"]] if row.get("options") else None,
                correct_answer=str(row["correct_answer"]).strip(),
                weight=normalize_weight(row.get("weight")),
                memorization_time=row.get("memorization_time"),
                pairs=row.get("pairs"),
                missing_indices=row.get("missing_indices"),
                order_index=int(row.get("order_index") or next_order[tt]),
            )
        )
        next_order[tt] += 1
        existing.add((tt, text))
        report.created += 1

    db.commit()
    log.info(
        "question import: created=%s skipped=%s removed=%s errors=%s",
        report.created,
        report.skipped,
        report.removed,
        len(report.errors),
    )
    return report
