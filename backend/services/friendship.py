import logging

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, delete, select, update

from models.auth import User
from models.common import atomic
from models.friendship import (
    CanonicalPair,
    FriendRequest,
    FriendRequestStatus,
    Friendship,
)
from models.types import utcnow
from services.errors import Conflict, Forbidden, InvalidInput, NotFound

logger = logging.getLogger("campus.friendship")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def get_user_by_email(session: Session, email: str) -> User | None:
    return session.exec(select(User).where(User.email == normalize_email(email))).first()


def get_friendship(session: Session, a: str, b: str) -> Friendship | None:
    pair = CanonicalPair.of(a, b)
    return session.exec(
        select(Friendship).where(
            Friendship.user1_id == pair.low,
            Friendship.user2_id == pair.high,
        )
    ).first()


def is_friend(session: Session, a: str, b: str) -> bool:
    return get_friendship(session, a, b) is not None


def _pending_between(session: Session, a: str, b: str) -> FriendRequest | None:
    pair = CanonicalPair.of(a, b)
    return session.exec(
        select(FriendRequest).where(
            FriendRequest.pair_low_id == pair.low,
            FriendRequest.pair_high_id == pair.high,
            FriendRequest.status == FriendRequestStatus.pending,
        )
    ).first()


def send_request(
    session: Session, *, sender: User, recipient_email: str
) -> tuple[FriendRequest, User]:
    if not normalize_email(recipient_email):
        raise InvalidInput("Email is required")

    recipient = get_user_by_email(session, recipient_email)
    if not recipient:
        raise NotFound("User with this email not found")

    if recipient.id == sender.id:
        raise InvalidInput("You cannot send a friend request to yourself")

    if is_friend(session, sender.id, recipient.id):
        raise Conflict("You are already friends with this user")

    if _pending_between(session, sender.id, recipient.id):
        raise Conflict("A friend request already exists between you and this user")

    friend_request = FriendRequest.between(sender.id, recipient.id)
    try:
        with atomic(session):
            session.add(friend_request)
    except IntegrityError:
        # lost a race against a concurrent request for the same pair
        raise Conflict("A friend request already exists between you and this user")

    logger.info(f"Friend request {friend_request.id}: {sender.id} -> {recipient.id}")
    return friend_request, recipient


def list_requests(session: Session, *, user: User) -> dict[str, list[dict]]:
    """Pending requests involving the user, newest first."""
    received = session.exec(
        select(FriendRequest, User)
        .join(User, FriendRequest.sender_id == User.id)
        .where(
            FriendRequest.receiver_id == user.id,
            FriendRequest.status == FriendRequestStatus.pending,
        )
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
    ).all()
    sent = session.exec(
        select(FriendRequest, User)
        .join(User, FriendRequest.receiver_id == User.id)
        .where(
            FriendRequest.sender_id == user.id,
            FriendRequest.status == FriendRequestStatus.pending,
        )
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
    ).all()

    return {
        "received": [
            _request_row(fr, sender_name=other.name, sender_email=other.email)
            for fr, other in received
        ],
        "sent": [
            _request_row(fr, receiver_name=other.name, receiver_email=other.email)
            for fr, other in sent
        ],
    }


def _request_row(fr: FriendRequest, **extra) -> dict:
    return {
        "id": fr.id,
        "sender_id": fr.sender_id,
        "receiver_id": fr.receiver_id,
        "status": fr.status,
        "created_at": fr.created_at,
        **extra,
    }


def _load_request_for_receiver(
    session: Session, request_id: int, user: User, action: str
) -> FriendRequest:
    friend_request = session.get(FriendRequest, request_id)
    if not friend_request:
        raise NotFound("Friend request not found")
    if friend_request.receiver_id != user.id:
        raise Forbidden(f"You are not authorized to {action} this request")
    if friend_request.status != FriendRequestStatus.pending:
        raise Conflict("This request has already been processed")
    return friend_request


def _resolve(session: Session, request_id: int, status: FriendRequestStatus) -> None:
    """Move a request out of pending, failing if somebody else got there first.

    The status guard is part of the UPDATE itself so two racing callers
    cannot both see the request as pending.
    """
    result = session.exec(
        update(FriendRequest)
        .where(
            FriendRequest.id == request_id,
            FriendRequest.status == FriendRequestStatus.pending,
        )
        .values(status=status, updated_at=utcnow())
    )
    if result.rowcount != 1:
        raise Conflict("This request has already been processed")


def accept_request(session: Session, *, request_id: int, user: User) -> Friendship:
    friend_request = _load_request_for_receiver(session, request_id, user, "accept")
    pair = CanonicalPair.of(friend_request.sender_id, friend_request.receiver_id)

    friendship = Friendship.for_pair(pair)
    try:
        with atomic(session):
            _resolve(session, request_id, FriendRequestStatus.accepted)
            session.add(friendship)
    except IntegrityError:
        raise Conflict("You are already friends with this user")

    session.refresh(friend_request)
    logger.info(f"Friend request {request_id} accepted, friendship {pair}")
    return friendship


def reject_request(session: Session, *, request_id: int, user: User) -> FriendRequest:
    friend_request = _load_request_for_receiver(session, request_id, user, "reject")
    with atomic(session):
        _resolve(session, request_id, FriendRequestStatus.rejected)
    session.refresh(friend_request)
    logger.info(f"Friend request {request_id} rejected")
    return friend_request


def list_friends(session: Session, *, user: User) -> list[dict]:
    rows = session.exec(
        select(Friendship, User)
        .join(
            User,
            or_(
                and_(Friendship.user1_id == user.id, User.id == Friendship.user2_id),
                and_(Friendship.user2_id == user.id, User.id == Friendship.user1_id),
            ),
        )
        .order_by(Friendship.created_at.desc(), Friendship.id.desc())
    ).all()
    return [
        {
            "friend_id": friend.id,
            "friend_name": friend.name,
            "friend_email": friend.email,
            "friends_since": friendship.created_at,
        }
        for friendship, friend in rows
    ]


def list_friend_ids(session: Session, user_id: str) -> list[str]:
    friendships = session.exec(
        select(Friendship).where(
            or_(Friendship.user1_id == user_id, Friendship.user2_id == user_id)
        )
    ).all()
    return [fr.pair.other(user_id) for fr in friendships]


def remove_friend(session: Session, *, user: User, friend_id: str) -> None:
    """Drop the friendship edge. Message history between the pair is kept."""
    if not friend_id:
        raise InvalidInput("Invalid friend ID")

    pair = CanonicalPair.of(user.id, friend_id)
    with atomic(session):
        result = session.exec(
            delete(Friendship).where(
                Friendship.user1_id == pair.low,
                Friendship.user2_id == pair.high,
            )
        )
        if result.rowcount == 0:
            raise NotFound("Friendship not found")
    logger.info(f"Friendship {pair} removed by {user.id}")
