"""Group chats: creation, membership and membership-gated messages."""

import datetime
import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, delete, func, select

from models.auth import User
from models.common import atomic
from models.group import Group, GroupMember, GroupMessage
from services.chat import DEFAULT_PAGE_SIZE, check_page
from services.errors import Forbidden, InvalidInput, NotFound
from services.friendship import normalize_email

logger = logging.getLogger("campus.groups")

_NEVER = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)
MEMBER_ADD_ATTEMPTS = 3


def _resolve_emails(
    session: Session, emails: list[str]
) -> tuple[list[User], list[str]]:
    """Split emails into registered users and the addresses nobody owns."""
    wanted = list(dict.fromkeys(e for e in map(normalize_email, emails) if e))
    if not wanted:
        return [], []
    users = session.exec(select(User).where(User.email.in_(wanted))).all()
    found = {u.email for u in users}
    return list(users), [e for e in wanted if e not in found]


def is_member(session: Session, group_id: int, user_id: str) -> bool:
    return session.get(GroupMember, (group_id, user_id)) is not None


def require_member(session: Session, group_id: int, user: User) -> None:
    # membership is checked live on every call, never snapshotted
    if not is_member(session, group_id, user.id):
        raise Forbidden("You are not a member of this group")


def _member_ids(session: Session, group_id: int) -> set[str]:
    return set(
        session.exec(
            select(GroupMember.user_id).where(GroupMember.group_id == group_id)
        ).all()
    )


def _members(session: Session, group_id: int) -> list[dict]:
    rows = session.exec(
        select(User, GroupMember.joined_at)
        .join(GroupMember, GroupMember.user_id == User.id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.joined_at, User.name)
    ).all()
    return [{**u.public(), "joined_at": joined_at} for u, joined_at in rows]


def create_group(
    session: Session, *, creator: User, name: str, member_emails: list[str]
) -> dict:
    name = (name or "").strip()
    if not name or not member_emails:
        raise InvalidInput("Group name and at least one member email are required")

    users, not_found = _resolve_emails(session, member_emails)
    if not users:
        raise NotFound("No valid users found with the provided emails")

    group = Group(name=name, created_by=creator.id)
    with atomic(session):
        session.add(group)
        session.flush()
        session.add(GroupMember(group_id=group.id, user_id=creator.id))
        for user_id in dict.fromkeys(u.id for u in users):
            if user_id != creator.id:
                session.add(GroupMember(group_id=group.id, user_id=user_id))

    logger.info(f"Group {group.id} created by {creator.id} with {len(users)} members")
    return {
        "id": group.id,
        "name": group.name,
        "created_by": group.created_by,
        "created_at": group.created_at,
        "members": _members(session, group.id),
        "not_found_emails": not_found,
    }


def send_group_message(
    session: Session, *, sender: User, group_id: int, text: str | None
) -> GroupMessage:
    require_member(session, group_id, sender)
    text = (text or "").strip()
    if not text:
        raise InvalidInput("Message cannot be empty")

    message = GroupMessage(sender_id=sender.id, group_id=group_id, message=text)
    with atomic(session):
        session.add(message)
    session.refresh(message)
    return message


def get_group_conversation(
    session: Session,
    *,
    user: User,
    group_id: int,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[dict]:
    """Same paging contract as the direct conversation: newest-first pages, oldest-first rows."""
    check_page(limit, offset)
    require_member(session, group_id, user)

    rows = session.exec(
        select(GroupMessage, User.name)
        .join(User, GroupMessage.sender_id == User.id)
        .where(GroupMessage.group_id == group_id)
        .order_by(GroupMessage.created_at.desc(), GroupMessage.id.desc())
        .limit(limit)
        .offset(offset)
    ).all()
    return [message.to_dict(sender_name=name) for message, name in reversed(rows)]


def list_user_groups(session: Session, *, user: User) -> list[dict]:
    groups = session.exec(
        select(Group)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .where(GroupMember.user_id == user.id)
        .order_by(Group.created_at.desc(), Group.id.desc())
    ).all()
    if not groups:
        return []

    group_ids = [g.id for g in groups]
    member_counts = dict(
        session.exec(
            select(GroupMember.group_id, func.count(GroupMember.user_id))
            .where(GroupMember.group_id.in_(group_ids))
            .group_by(GroupMember.group_id)
        ).all()
    )

    result = []
    for group in groups:
        last = session.exec(
            select(GroupMessage, User.name)
            .join(User, GroupMessage.sender_id == User.id)
            .where(GroupMessage.group_id == group.id)
            .order_by(GroupMessage.created_at.desc(), GroupMessage.id.desc())
            .limit(1)
        ).first()
        message, sender_name = last if last else (None, None)
        result.append(
            {
                "id": group.id,
                "name": group.name,
                "created_by": group.created_by,
                "created_at": group.created_at,
                "last_message": message.message if message else None,
                "last_message_time": message.created_at if message else None,
                "last_sender_id": message.sender_id if message else None,
                "last_sender_name": sender_name,
                "member_count": member_counts.get(group.id, 0),
            }
        )

    result.sort(key=lambda g: g["last_message_time"] or _NEVER, reverse=True)
    return result


def get_group_members(session: Session, *, user: User, group_id: int) -> list[dict]:
    require_member(session, group_id, user)
    return _members(session, group_id)


def add_members(
    session: Session, *, user: User, group_id: int, member_emails: list[str]
) -> dict:
    """Any current member may add people; already-present members are skipped."""
    if not member_emails:
        raise InvalidInput("At least one member email is required")
    require_member(session, group_id, user)

    users, not_found = _resolve_emails(session, member_emails)
    if not users:
        raise NotFound("No valid users found with the provided emails")

    for attempt in range(MEMBER_ADD_ATTEMPTS):
        added = []
        try:
            with atomic(session):
                present = _member_ids(session, group_id)
                for candidate in users:
                    if candidate.id in present:
                        continue
                    session.add(GroupMember(group_id=group_id, user_id=candidate.id))
                    present.add(candidate.id)
                    added.append(candidate.public())
            break
        except IntegrityError:
            # somebody added one of them meanwhile, the next pass skips it
            if attempt == MEMBER_ADD_ATTEMPTS - 1:
                raise
            logger.debug(f"Concurrent member add on group {group_id}, retrying")

    logger.info(f"{user.id} added {len(added)} members to group {group_id}")
    return {"added_members": added, "not_found_emails": not_found}


def leave_group(session: Session, *, user: User, group_id: int) -> None:
    with atomic(session):
        result = session.exec(
            delete(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user.id,
            )
        )
        if result.rowcount == 0:
            raise NotFound("You are not a member of this group")
    logger.info(f"{user.id} left group {group_id}")


def delete_group(session: Session, *, user: User, group_id: int) -> None:
    group = session.get(Group, group_id)
    if not group:
        raise NotFound("Group not found")
    if group.created_by != user.id:
        raise Forbidden("Only the group creator can delete the group")

    # dependency order: memberships, messages, then the group row
    with atomic(session):
        session.exec(delete(GroupMember).where(GroupMember.group_id == group_id))
        session.exec(delete(GroupMessage).where(GroupMessage.group_id == group_id))
        session.exec(delete(Group).where(Group.id == group_id))
    logger.info(f"Group {group_id} deleted by {user.id}")
