# exam_engine/schemas/release.py
from pydantic import BaseModel


class ReleaseToggle(BaseModel):
    release: bool = True


class ReleaseState(BaseModel):
    submission_id: int
    results_released: bool


class ReleaseCount(BaseModel):
    released_count: int


class JobEnqueued(BaseModel):
    job_id: str
