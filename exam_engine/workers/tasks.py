"""
Background tasks executed by RQ workers.

Both wrap a service call in their own database session and return a summary
dict; failures are logged and reported in the dict instead of raised.
"""

import logging

from exam_engine.core.config import settings
from exam_engine.db.session import SessionLocal
from exam_engine.services import release_service, scoring_service

logger = logging.getLogger(__name__)


def regrade_task(exam_id: int | None = None) -> dict:
    """Regrade all submitted attempts, or those of ``exam_id``."""
    db = SessionLocal()
    try:
        logger.info(f"Starting regrade task (exam_id={exam_id})")
        report = scoring_service.regrade_all(db, exam_id=exam_id)
        return {
            "status": "success",
            "exam_id": exam_id,
            "examined": report.examined,
            "updated_count": report.updated_count,
            "failed_count": report.failed_count,
        }

    except Exception as e:
        logger.error(f"Unexpected error during regrade task: {e}", exc_info=True)
        return {
            "status": "error",
            "exam_id": exam_id,
            "error": str(e),
        }

    finally:
        db.close()


def release_sweep_task() -> dict:
    """
    Release results of SCHEDULED exams that are due.

    With RELEASE_SWEEP_INTERVAL_SECONDS > 0 the task queues its next run, which
    makes it a periodic job on a worker started with the scheduler enabled.
    """
    db = SessionLocal()
    try:
        released = release_service.release_due_sweep(db)
        result = {"status": "success", "released_count": released}

    except Exception as e:
        logger.error(f"Unexpected error during release sweep: {e}", exc_info=True)
        result = {"status": "error", "error": str(e)}

    finally:
        db.close()

    interval = settings.RELEASE_SWEEP_INTERVAL_SECONDS
    if interval > 0:
        from exam_engine.workers.queue import schedule_next_release_sweep

        try:
            result["next_job_id"] = schedule_next_release_sweep(interval)
        except Exception as e:
            logger.error(f"Could not schedule next release sweep: {e}", exc_info=True)

    return result
