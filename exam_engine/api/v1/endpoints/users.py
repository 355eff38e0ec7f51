# exam_engine/api/v1/endpoints/users.py
from fastapi import APIRouter, Depends

from exam_engine.schemas.user import UserPublic
from exam_engine.models.user import User
from exam_engine.core.security import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserPublic)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user
