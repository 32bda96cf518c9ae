"""Direct messages between friends."""

import datetime
import logging

from sqlalchemy import and_, func, or_
from sqlmodel import Session, select, update

from models.auth import User
from models.chat import AttachmentInfo, DirectMessage
from models.common import atomic
from services.errors import Forbidden, InvalidInput, NotFound
from services.friendship import is_friend, list_friend_ids

logger = logging.getLogger("campus.chat")

DEFAULT_PAGE_SIZE = 50
_NEVER = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def _between(a: str, b: str):
    return or_(
        and_(DirectMessage.sender_id == a, DirectMessage.receiver_id == b),
        and_(DirectMessage.sender_id == b, DirectMessage.receiver_id == a),
    )


def check_page(limit: int, offset: int) -> None:
    if limit < 1:
        raise InvalidInput("limit must be a positive number")
    if offset < 0:
        raise InvalidInput("offset cannot be negative")


def send_message(
    session: Session,
    *,
    sender: User,
    receiver_id: str | None,
    text: str | None = None,
    attachment: AttachmentInfo | None = None,
) -> DirectMessage:
    receiver_id = (receiver_id or "").strip()
    if not receiver_id:
        raise InvalidInput("Receiver ID is required")
    if receiver_id == sender.id:
        raise InvalidInput("You cannot send a message to yourself")

    if not is_friend(session, sender.id, receiver_id):
        raise Forbidden("You can only send messages to your friends")

    text = (text or "").strip() or None
    if text is None and attachment is None:
        raise InvalidInput("Message or attachment is required")

    message = DirectMessage(sender_id=sender.id, receiver_id=receiver_id, message=text)
    if attachment is not None:
        message.attachment_path = attachment.path
        message.attachment_name = attachment.original_name
        message.attachment_size = attachment.size
        message.attachment_type = attachment.mime_type

    with atomic(session):
        session.add(message)
    session.refresh(message)
    return message


def get_conversation(
    session: Session,
    *,
    user: User,
    friend_id: str,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[dict]:
    """One page of the conversation, oldest first.

    Pages are cut newest-first, so increasing the offset walks back in time.
    This is a pure read: unread flags are left alone, see mark_read.
    """
    check_page(limit, offset)
    if not is_friend(session, user.id, friend_id):
        raise Forbidden("You can only view conversations with your friends")

    rows = session.exec(
        select(DirectMessage, User.name)
        .join(User, DirectMessage.sender_id == User.id)
        .where(_between(user.id, friend_id))
        .order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc())
        .limit(limit)
        .offset(offset)
    ).all()
    return [message.to_dict(sender_name=name) for message, name in reversed(rows)]


def mark_read(session: Session, *, user: User, friend_id: str) -> int:
    """Flag everything the friend sent to the user as read, returns how many flipped."""
    with atomic(session):
        result = session.exec(
            update(DirectMessage)
            .where(
                DirectMessage.receiver_id == user.id,
                DirectMessage.sender_id == friend_id,
                DirectMessage.is_read == False,  # noqa: E712
            )
            .values(is_read=True)
        )
    return result.rowcount


def unread_count(session: Session, *, user: User) -> int:
    return session.exec(
        select(func.count(DirectMessage.id)).where(
            DirectMessage.receiver_id == user.id,
            DirectMessage.is_read == False,  # noqa: E712
        )
    ).one()


def list_conversations(session: Session, *, user: User) -> list[dict]:
    """Every friend with the latest message exchanged and the unread count.

    Most recent activity first, friends we never talked to at the end.
    """
    friend_ids = list_friend_ids(session, user.id)
    if not friend_ids:
        return []

    friends = session.exec(select(User).where(User.id.in_(friend_ids))).all()
    unread = dict(
        session.exec(
            select(DirectMessage.sender_id, func.count(DirectMessage.id))
            .where(
                DirectMessage.receiver_id == user.id,
                DirectMessage.sender_id.in_(friend_ids),
                DirectMessage.is_read == False,  # noqa: E712
            )
            .group_by(DirectMessage.sender_id)
        ).all()
    )

    conversations = []
    for friend in sorted(friends, key=lambda f: f.name.lower()):
        last = session.exec(
            select(DirectMessage)
            .where(_between(user.id, friend.id))
            .order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc())
            .limit(1)
        ).first()
        conversations.append(
            {
                "friend_id": friend.id,
                "friend_name": friend.name,
                "friend_email": friend.email,
                "last_message": last.message if last else None,
                "last_attachment_name": last.attachment_name if last else None,
                "last_message_time": last.created_at if last else None,
                "last_sender_id": last.sender_id if last else None,
                "unread_count": unread.get(friend.id, 0),
            }
        )

    conversations.sort(key=lambda c: c["last_message_time"] or _NEVER, reverse=True)
    return conversations


def get_attachment(session: Session, *, user: User, message_id: int) -> DirectMessage:
    message = session.get(DirectMessage, message_id)
    if not message:
        raise NotFound("Message not found")
    if user.id not in (message.sender_id, message.receiver_id):
        raise Forbidden("You are not allowed to download this attachment")
    if not message.has_attachment:
        raise NotFound("This message has no attachment")
    return message
