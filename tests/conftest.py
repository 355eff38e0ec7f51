import os

# Must be set before exam_engine.db.session builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import exam_engine.models  # noqa: F401  registers all tables
from exam_engine.core.security import create_access_token
from exam_engine.db.base import Base
from exam_engine.db.session import get_db
from exam_engine.models.user import ROLE_ADMIN, ROLE_CANDIDATE, User
from exam_engine.schemas.exam import ExamCreate
from exam_engine.services import exam_service

TEST_DATABASE_URL = "sqlite://"

T0 = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    """Create a test database session."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def _make_user(db, email, name, role):
    user = User(email=email, name=name, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db_session):
    return _make_user(db_session, "admin@test.com", "Test Admin", ROLE_ADMIN)


@pytest.fixture
def candidate(db_session):
    return _make_user(db_session, "candidate@test.com", "Test Candidate", ROLE_CANDIDATE)


@pytest.fixture
def other_candidate(db_session):
    return _make_user(db_session, "other@test.com", "Other Candidate", ROLE_CANDIDATE)


@pytest.fixture
def make_exam(db_session, admin):
    """
    Build a published exam. Defaults to two objective questions worth 1 and 2
    points (answers "B" and "C") and one subjective question worth 2 points.
    """

    def _make(questions=None, **overrides):
        if questions is None:
            questions = [
                {"type": "OBJECTIVE_SINGLE", "text": "2 + 2?", "options": ["A", "B", "C"],
                 "correct_answer": "B", "points": 1},
                {"type": "OBJECTIVE_BEST", "text": "Best fit?", "options": ["A", "B", "C"],
                 "correct_answer": "C", "points": 2},
                {"type": "SUBJECTIVE", "text": "Explain.", "points": 2},
            ]
        data = {
            "title": "Midterm",
            "duration_minutes": 30,
            "grace_period_seconds": 30,
            "published": True,
            "questions": questions,
        }
        data.update(overrides)
        return exam_service.create_exam(db_session, author=admin, obj_in=ExamCreate(**data))

    return _make


@pytest.fixture
def objective_exam(make_exam):
    return make_exam(
        questions=[
            {"type": "OBJECTIVE_SINGLE", "text": "Q1", "correct_answer": "A", "points": 1},
            {"type": "OBJECTIVE_SINGLE", "text": "Q2", "correct_answer": "B", "points": 1},
            {"type": "OBJECTIVE_SINGLE", "text": "Q3", "correct_answer": "C", "points": 1},
        ]
    )


def qid(exam, index):
    """String id of the exam's ``index``-th question, as used in answer maps."""
    return str(exam.questions[index].id)


@pytest.fixture
def client(db_session):
    from exam_engine.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}
