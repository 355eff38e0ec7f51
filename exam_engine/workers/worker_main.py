# exam_engine/workers/worker_main.py

from rq import Queue, SimpleWorker

from exam_engine.core.config import settings
from exam_engine.core.logging import setup_logging
from exam_engine.workers.queue import ensure_release_sweep_scheduled, get_redis_connection


QUEUE_NAMES = ["grading", "release"]


def main():
    setup_logging()
    redis_conn = get_redis_connection()

    queues = [Queue(name, connection=redis_conn) for name in QUEUE_NAMES]

    if settings.RELEASE_SWEEP_INTERVAL_SECONDS > 0:
        # seeds the self-rescheduling sweep once across restarts and workers
        ensure_release_sweep_scheduled()

    worker = SimpleWorker(queues, connection=redis_conn)

    worker.work(with_scheduler=True)


if __name__ == "__main__":
    main()
