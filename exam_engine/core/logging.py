# exam_engine/core/logging.py
import logging

from exam_engine.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once for the API process and RQ workers."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
