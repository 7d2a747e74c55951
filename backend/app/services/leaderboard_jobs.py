from __future__ import annotations

import logging
from datetime import datetime, timezone

from rq import get_current_job

from app.core.locks import ranking_lock_key, redis_lock
from app.services.question_bank import QuestionBank
from app.services.ranking import RankingEngine


log = logging.getLogger(__name__)


def _set_stage(job, stage: str, *, detail: str | None = None) -> None:
    if job is None:
        return
    job.meta["stage"] = stage
    job.meta["stage_at"] = datetime.now(timezone.utc).isoformat()
    if detail is not None:
        job.meta["detail"] = detail
    job.save_meta()


def rebuild_leaderboards_job(*, test_type_ids: list[str] | None = None) -> dict:
    """Re-derive and re-rank leaderboards from stored results.

    Safe to run repeatedly; each test type is rebuilt under its ranking lock in
    its own transaction.
    """

    from app.db.session import SessionLocal

    job = get_current_job()
    out: dict[str, object] = {"ok": True, "test_types": {}}

    with SessionLocal() as db:
        bank = QuestionBank(db)
        if test_type_ids:
            targets = [bank.get_test_type(t) for t in test_type_ids]
            missing = [t for t, tt in zip(test_type_ids, targets) if tt is None]
            if missing:
                log.warning("rebuild_leaderboards_job: unknown test types %s", missing)
            targets = [t for t in targets if t is not None]
        else:
            targets = bank.list_test_types()

        for test_type in targets:
            _set_stage(job, "rebuilding", detail=test_type.id)
            with redis_lock(ranking_lock_key(test_type.id)):
                try:
                    ranked = RankingEngine(db).rebuild(test_type)
                    db.commit()
                except Exception:
                    db.rollback()
                    log.exception("rebuild_leaderboards_job: failed for %s", test_type.id)
                    raise
            out["test_types"][test_type.id] = {"entries": len(ranked)}
            log.info("rebuild_leaderboards_job: %s re-ranked %s entries", test_type.id, len(ranked))

    _set_stage(job, "done")
    return out
