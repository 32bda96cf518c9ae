"""Models package for the Campus Connect backend"""

from .common import get_session, CamelModel, Database
from .auth import User, UserRole
from .chat import AttachmentInfo, DirectMessage
from .friendship import CanonicalPair, FriendRequest, FriendRequestStatus, Friendship
from .group import Group, GroupMember, GroupMessage
from .types import UtcAwareDateTime

__all__ = [
    "AttachmentInfo",
    "CamelModel",
    "CanonicalPair",
    "Database",
    "DirectMessage",
    "FriendRequest",
    "FriendRequestStatus",
    "Friendship",
    "Group",
    "GroupMember",
    "GroupMessage",
    "User",
    "UserRole",
    "UtcAwareDateTime",
    "get_session",
]
