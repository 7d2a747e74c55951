from __future__ import annotations

import argparse
import json
import os
import pathlib
import sys

# Force /app into path for Docker compatibility
sys.path.append("/app")
# Also add current directory as fallback
sys.path.append(os.getcwd())

from app.db.session import SessionLocal
from app.services.question_import import import_questions
from app.services.test_types import ensure_test_types


def run(*, path: pathlib.Path | None, replace: bool) -> int:
    with SessionLocal() as db:
        added = ensure_test_types(db)
        print(f"test types added: {added}")
        if path is None:
            return 0

        rows = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(rows, dict):
            rows = rows.get("questions") or []
        report = import_questions(db, rows, replace=replace)

    print(f"questions created={report.created} skipped={report.skipped} removed={report.removed}")
    for err in report.errors:
        print(f"  error: {err}")
    return 1 if report.errors else 0


def main() -> None:
    p = argparse.ArgumentParser()
    p.add_argument("--questions", default=None, help="JSON file with a list of questions (or {\"questions\": [...]})")
    p.add_argument("--replace", action="store_true", help="Delete existing questions of the imported test types first")
    args = p.parse_args()

    sys.exit(run(path=pathlib.Path(args.questions) if args.questions else None, replace=bool(args.replace)))


if __name__ == "__main__":
    main()
