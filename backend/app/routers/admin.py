from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.queue import fetch_job, get_queue
from app.core.security import require_roles
from app.db.session import get_db
from app.models.user import User, UserRole
from app.services.leaderboard_jobs import rebuild_leaderboards_job
from app.services.question_bank import QuestionBank

router = APIRouter(prefix="/admin", tags=["admin"])


class RebuildRequest(BaseModel):
    test_type_ids: list[str] | None = None


class JobEnqueued(BaseModel):
    ok: bool = True
    job_id: str


class JobStatus(BaseModel):
    job_id: str
    status: str
    stage: str | None = None
    detail: str | None = None
    result: dict | None = None
    error: str | None = None


@router.post("/leaderboard/rebuild", response_model=JobEnqueued)
def rebuild_leaderboards(
    body: RebuildRequest | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.admin)),
):
    test_type_ids = list((body.test_type_ids if body else None) or [])
    bank = QuestionBank(db)
    unknown = [t for t in test_type_ids if bank.get_test_type(t) is None]
    if unknown:
        raise HTTPException(status_code=404, detail=f"unknown test types: {', '.join(unknown)}")

    q = get_queue(str(settings.rq_queue_default))
    job = q.enqueue(
        rebuild_leaderboards_job,
        test_type_ids=test_type_ids or None,
        job_timeout=60 * 10,
        result_ttl=60 * 60,
        failure_ttl=60 * 60 * 24,
    )
    return JobEnqueued(job_id=str(job.id))


@router.get("/jobs/{job_id}", response_model=JobStatus)
def job_status(
    job_id: str,
    _: User = Depends(require_roles(UserRole.admin)),
):
    job = fetch_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")

    st = str(job.get_status(refresh=True) or "").strip().lower()
    meta = dict(job.meta or {})
    out = JobStatus(job_id=str(job.id), status=st, stage=meta.get("stage"), detail=meta.get("detail"))
    if st == "finished":
        res = job.return_value()
        out.result = res if isinstance(res, dict) else None
    elif st == "failed":
        lines = str(job.exc_info or "").strip().splitlines()
        out.error = lines[-1] if lines else "job failed"
    return out
