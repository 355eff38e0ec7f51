# exam_engine/schemas/user.py
from pydantic import BaseModel
from datetime import datetime


class UserPublic(BaseModel):
    id: int
    email: str
    name: str
    role: str  # "candidate" / "admin" / "superadmin"
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
