from fastapi import APIRouter, Depends
from sqlmodel import Session

from models.auth import User
from models.common import CamelModel, get_session
from routes.deps import current_user, envelope
from services.friendship import (
    accept_request as svc_accept_request,
    list_friends as svc_list_friends,
    list_requests as svc_list_requests,
    reject_request as svc_reject_request,
    remove_friend as svc_remove_friend,
    send_request as svc_send_request,
)

router = APIRouter(prefix="/friend-requests")


class FriendRequestPayload(CamelModel):
    email: str


@router.post("", status_code=201)
async def send_friend_request(
    payload: FriendRequestPayload,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    fr, receiver = svc_send_request(session, sender=user, recipient_email=payload.email)
    return envelope(
        "Friend request sent successfully",
        {
            "friendRequest": {
                "id": fr.id,
                "sender_id": fr.sender_id,
                "receiver_id": fr.receiver_id,
                "status": fr.status,
                "created_at": fr.created_at,
            },
            "receiver": receiver.public(),
        },
    )


@router.get("")
async def get_friend_requests(
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    return envelope(
        "Friend requests retrieved successfully", svc_list_requests(session, user=user)
    )


@router.post("/{request_id}/accept")
async def accept_friend_request(
    request_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    friendship = svc_accept_request(session, request_id=request_id, user=user)
    return envelope(
        "Friend request accepted",
        {
            "friendship": {
                "id": friendship.id,
                "user1_id": friendship.user1_id,
                "user2_id": friendship.user2_id,
                "created_at": friendship.created_at,
            }
        },
    )


@router.post("/{request_id}/reject")
async def reject_friend_request(
    request_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    svc_reject_request(session, request_id=request_id, user=user)
    return envelope("Friend request rejected")


@router.get("/friends")
async def get_friends(
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    return envelope(
        "Friends retrieved successfully",
        {"friends": svc_list_friends(session, user=user)},
    )


@router.delete("/friends/{friend_id}")
async def remove_friend(
    friend_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    svc_remove_friend(session, user=user, friend_id=friend_id)
    return envelope("Friend removed successfully")
