# exam_engine/db/init_db.py
from exam_engine.db.base import Base
from exam_engine.db.session import engine
from exam_engine import models  # noqa: F401


def init_db():
    Base.metadata.create_all(bind=engine)
