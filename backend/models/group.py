import datetime

from sqlalchemy import Column, Index
from sqlmodel import Field, SQLModel

from models.types import UtcAwareDateTime, utcnow


class Group(SQLModel, table=True):
    __tablename__ = "groups"

    id: int | None = Field(default=None, primary_key=True)
    name: str
    created_by: str = Field(foreign_key="users.id", index=True)
    created_at: datetime.datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )


class GroupMember(SQLModel, table=True):
    __tablename__ = "group_members"

    group_id: int = Field(foreign_key="groups.id", primary_key=True)
    user_id: str = Field(foreign_key="users.id", primary_key=True, index=True)
    joined_at: datetime.datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )


class GroupMessage(SQLModel, table=True):
    __tablename__ = "group_messages"
    __table_args__ = (
        Index("ix_group_messages_group_created", "group_id", "created_at"),
    )

    id: int | None = Field(default=None, primary_key=True)
    sender_id: str = Field(foreign_key="users.id")
    group_id: int = Field(foreign_key="groups.id")
    message: str
    is_read: bool = False
    created_at: datetime.datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )

    def to_dict(self, sender_name: str | None = None) -> dict:
        data = {
            "id": self.id,
            "sender_id": self.sender_id,
            "group_id": self.group_id,
            "message": self.message,
            "is_read": self.is_read,
            "created_at": self.created_at,
        }
        if sender_name is not None:
            data["sender_name"] = sender_name
        return data
