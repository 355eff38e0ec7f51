# exam_engine/workers/queue.py

import logging
import uuid
from datetime import timedelta

from redis import Redis
from rq import Queue, get_current_job

from exam_engine.core.config import settings

logger = logging.getLogger(__name__)

_GRADING_QUEUE_NAME = "grading"
_RELEASE_QUEUE_NAME = "release"

RELEASE_SWEEP_JOB_PREFIX = "release-sweep-"

_redis_conn: Redis | None = None


def get_redis_connection() -> Redis:
    global _redis_conn
    if _redis_conn is None:
        redis_url = settings.REDIS_URL
        _redis_conn = Redis.from_url(redis_url)
    return _redis_conn


def get_queue(name: str) -> Queue:
    return Queue(name, connection=get_redis_connection())


def enqueue_regrade_task(exam_id: int | None = None) -> str:
    from exam_engine.workers.tasks import regrade_task

    q = get_queue(_GRADING_QUEUE_NAME)
    job = q.enqueue(regrade_task, exam_id)
    return job.id


def enqueue_release_sweep_task(delay_seconds: int = 0) -> str:
    """Run the scheduled-release sweep now, or after ``delay_seconds`` (needs a scheduler-enabled worker)."""
    from exam_engine.workers.tasks import release_sweep_task

    q = get_queue(_RELEASE_QUEUE_NAME)
    job_id = f"{RELEASE_SWEEP_JOB_PREFIX}{uuid.uuid4().hex}"
    if delay_seconds > 0:
        job = q.enqueue_in(timedelta(seconds=delay_seconds), release_sweep_task, job_id=job_id)
    else:
        job = q.enqueue(release_sweep_task, job_id=job_id)
    return job.id


def pending_release_sweep_ids(exclude: str | None = None) -> list[str]:
    """Sweep jobs that are queued, scheduled or running, other than ``exclude``."""
    q = get_queue(_RELEASE_QUEUE_NAME)
    job_ids = (
        list(q.job_ids)
        + q.scheduled_job_registry.get_job_ids()
        + q.started_job_registry.get_job_ids()
    )
    return [
        job_id for job_id in job_ids
        if job_id.startswith(RELEASE_SWEEP_JOB_PREFIX) and job_id != exclude
    ]


def ensure_release_sweep_scheduled() -> str | None:
    """Seed the periodic sweep unless one is already pending; returns the new job id."""
    pending = pending_release_sweep_ids()
    if pending:
        logger.info(f"Release sweep already pending ({pending[0]}); not seeding another")
        return None
    return enqueue_release_sweep_task()


def schedule_next_release_sweep(delay_seconds: int) -> str | None:
    """
    Called from inside a running sweep. Queues the next run unless another
    sweep is already pending, which folds duplicate chains back into one.
    """
    current = get_current_job()
    pending = pending_release_sweep_ids(exclude=current.id if current else None)
    if pending:
        logger.info(f"Release sweep {pending[0]} already pending; not scheduling another")
        return None
    return enqueue_release_sweep_task(delay_seconds=delay_seconds)
