# exam_engine/api/v1/endpoints/jobs.py
from fastapi import APIRouter, Depends

from exam_engine.core.security import get_current_admin
from exam_engine.models.user import User
from exam_engine.schemas.release import JobEnqueued
from exam_engine.schemas.score import RegradeRequest
from exam_engine.workers.queue import enqueue_regrade_task, enqueue_release_sweep_task

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/release-sweep", response_model=JobEnqueued)
def enqueue_release_sweep(current_admin: User = Depends(get_current_admin)):
    return JobEnqueued(job_id=enqueue_release_sweep_task())


@router.post("/regrade", response_model=JobEnqueued)
def enqueue_regrade(
    obj_in: RegradeRequest | None = None,
    current_admin: User = Depends(get_current_admin),
):
    """Same as POST /scores/regrade but run by an RQ worker."""
    return JobEnqueued(job_id=enqueue_regrade_task(obj_in.exam_id if obj_in else None))
