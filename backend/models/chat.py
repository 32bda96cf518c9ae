import datetime
from dataclasses import dataclass

from sqlalchemy import CheckConstraint, Column, Index
from sqlmodel import Field, SQLModel

from models.types import UtcAwareDateTime, utcnow


@dataclass(frozen=True)
class AttachmentInfo:
    """Metadata of a file already written by the attachment storage."""

    path: str
    original_name: str
    size: int
    mime_type: str | None = None


class DirectMessage(SQLModel, table=True):
    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "message IS NOT NULL OR attachment_path IS NOT NULL",
            name="ck_message_has_content",
        ),
        Index("ix_messages_pair_created", "sender_id", "receiver_id", "created_at"),
        Index("ix_messages_unread", "receiver_id", "is_read"),
    )

    id: int | None = Field(default=None, primary_key=True)
    sender_id: str = Field(foreign_key="users.id")
    receiver_id: str = Field(foreign_key="users.id")
    message: str | None = None

    attachment_path: str | None = None
    attachment_name: str | None = None
    attachment_size: int | None = None
    attachment_type: str | None = None

    is_read: bool = False
    created_at: datetime.datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UtcAwareDateTime(), nullable=False, index=True),
    )

    @property
    def has_attachment(self) -> bool:
        return bool(self.attachment_path)

    def to_dict(self, sender_name: str | None = None) -> dict:
        data = {
            "id": self.id,
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "message": self.message,
            "is_read": self.is_read,
            "created_at": self.created_at,
            "attachment": None,
        }
        if self.has_attachment:
            data["attachment"] = {
                "name": self.attachment_name,
                "size": self.attachment_size,
                "type": self.attachment_type,
            }
        if sender_name is not None:
            data["sender_name"] = sender_name
        return data
