"""Identity models"""

import datetime
import uuid
from enum import Enum

from sqlalchemy import func
from sqlmodel import Column, Field, SQLModel

from .common import CamelModel
from .types import UtcAwareDateTime, utcnow


class UserRole(str, Enum):
    student = "student"
    admin = "admin"


class User(SQLModel, CamelModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    password_hash: str = Field(default="")
    role: UserRole = Field(default=UserRole.student)
    verified: bool = False

    verification_token: str | None = Field(default=None, index=True)
    reset_token: str | None = Field(default=None, index=True)
    reset_token_expires: datetime.datetime | None = Field(
        default=None,
        sa_column=Column(UtcAwareDateTime(), nullable=True),
    )

    created_at: datetime.datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )
    updated_at: datetime.datetime | None = Field(
        default=None,
        sa_column=Column(UtcAwareDateTime(), onupdate=func.now(), nullable=True),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    def public(self) -> dict:
        """The identity other users are allowed to see."""
        return {"id": self.id, "name": self.name, "email": self.email}

    def __str__(self):
        return self.email
