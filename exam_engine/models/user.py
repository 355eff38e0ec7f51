# exam_engine/models/user.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from exam_engine.db.base import Base

ROLE_CANDIDATE = "candidate"
ROLE_ADMIN = "admin"
ROLE_SUPERADMIN = "superadmin"
ADMIN_ROLES = (ROLE_ADMIN, ROLE_SUPERADMIN)


class User(Base):
    """Owned by the identity/CRUD layer; read here for id and role only."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_CANDIDATE)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
