import datetime
from enum import Enum
from typing import NamedTuple

from sqlalchemy import CheckConstraint, Column, Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel

from models.types import UtcAwareDateTime, utcnow


class CanonicalPair(NamedTuple):
    """Unordered pair of user ids, stored smaller id first."""

    low: str
    high: str

    @classmethod
    def of(cls, a: str, b: str) -> "CanonicalPair":
        return cls(a, b) if a < b else cls(b, a)

    def other(self, user_id: str) -> str:
        return self.high if user_id == self.low else self.low


class FriendRequestStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class FriendRequest(SQLModel, table=True):
    __tablename__ = "friend_requests"
    __table_args__ = (
        # At most one pending request per unordered pair
        Index(
            "uq_friend_requests_pending_pair",
            "pair_low_id",
            "pair_high_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    sender_id: str = Field(foreign_key="users.id", index=True)
    receiver_id: str = Field(foreign_key="users.id", index=True)
    status: FriendRequestStatus = Field(
        default=FriendRequestStatus.pending, index=True
    )

    # Canonical pair (always low < high), denormalised for the pending index
    pair_low_id: str = Field(foreign_key="users.id")
    pair_high_id: str = Field(foreign_key="users.id")

    created_at: datetime.datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )
    updated_at: datetime.datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )

    @classmethod
    def between(cls, sender_id: str, receiver_id: str) -> "FriendRequest":
        low, high = CanonicalPair.of(sender_id, receiver_id)
        return cls(
            sender_id=sender_id,
            receiver_id=receiver_id,
            pair_low_id=low,
            pair_high_id=high,
        )


class Friendship(SQLModel, table=True):
    __tablename__ = "friendships"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_friend_pair"),
        CheckConstraint("user1_id < user2_id", name="ck_friend_order"),
    )

    id: int | None = Field(default=None, primary_key=True)
    # Canonical pair (always user1 < user2)
    user1_id: str = Field(foreign_key="users.id", index=True)
    user2_id: str = Field(foreign_key="users.id", index=True)
    created_at: datetime.datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UtcAwareDateTime(), nullable=False),
    )

    @property
    def pair(self) -> CanonicalPair:
        return CanonicalPair(self.user1_id, self.user2_id)

    @classmethod
    def for_pair(cls, pair: CanonicalPair) -> "Friendship":
        return cls(user1_id=pair.low, user2_id=pair.high)
