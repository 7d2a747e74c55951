import logging

from fastapi import APIRouter, HTTPException
from sqlalchemy import func, select

from app.core.redis_client import get_redis
from app.models.test_type import TestType

router = APIRouter(tags=["health"])

log = logging.getLogger(__name__)


def _catalogue_size() -> int:
    from app.db.session import SessionLocal

    with SessionLocal() as db:
        return int(db.scalar(select(func.count(TestType.id))) or 0)


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/live")
def live():
    return {"status": "live"}


@router.get("/health/ready")
def ready():
    try:
        test_types = _catalogue_size()
    except Exception as e:
        log.warning("readiness: database check failed: %s", e)
        raise HTTPException(status_code=503, detail="db not ready") from e

    # Nothing can be scored until the catalogue is seeded.
    if test_types == 0:
        raise HTTPException(status_code=503, detail="test catalogue is empty")

    try:
        get_redis().ping()
    except Exception as e:
        log.warning("readiness: redis check failed: %s", e)
        raise HTTPException(status_code=503, detail="redis not ready") from e

    return {"status": "ready", "test_types": test_types}
