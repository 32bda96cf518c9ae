from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlmodel import Session

from models.auth import User
from models.common import CamelModel, get_session
from routes.deps import current_user, envelope
from services import groups as group_service
from services.chat import DEFAULT_PAGE_SIZE

router = APIRouter(prefix="/groups")


class CreateGroupPayload(CamelModel):
    name: str = ""
    member_emails: list[str] = Field(default_factory=list)


class GroupMessagePayload(CamelModel):
    group_id: int
    message: str = ""


class AddMembersPayload(CamelModel):
    member_emails: list[str] = Field(default_factory=list)


@router.post("", status_code=201)
async def create_group(
    payload: CreateGroupPayload,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    group = group_service.create_group(
        session, creator=user, name=payload.name, member_emails=payload.member_emails
    )
    group["notFoundEmails"] = group.pop("not_found_emails")
    return envelope("Group created successfully", {"group": group})


@router.get("")
async def get_user_groups(
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    return envelope(
        "Groups retrieved successfully",
        {"groups": group_service.list_user_groups(session, user=user)},
    )


@router.post("/messages", status_code=201)
async def send_group_message(
    payload: GroupMessagePayload,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    message = group_service.send_group_message(
        session, sender=user, group_id=payload.group_id, text=payload.message
    )
    return envelope("Message sent successfully", {"message": message.to_dict()})


@router.get("/{group_id}/messages")
async def get_group_conversation(
    group_id: int,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    messages = group_service.get_group_conversation(
        session, user=user, group_id=group_id, limit=limit, offset=offset
    )
    return envelope(
        "Group conversation retrieved successfully",
        {"messages": messages, "hasMore": len(messages) == limit},
    )


@router.get("/{group_id}/members")
async def get_group_members(
    group_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    return envelope(
        "Group members retrieved successfully",
        {"members": group_service.get_group_members(session, user=user, group_id=group_id)},
    )


@router.post("/{group_id}/members")
async def add_group_members(
    group_id: int,
    payload: AddMembersPayload,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    result = group_service.add_members(
        session, user=user, group_id=group_id, member_emails=payload.member_emails
    )
    return envelope(
        "Members added successfully",
        {
            "addedMembers": result["added_members"],
            "notFoundEmails": result["not_found_emails"],
        },
    )


@router.delete("/{group_id}/leave")
async def leave_group(
    group_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    group_service.leave_group(session, user=user, group_id=group_id)
    return envelope("Left group successfully")


@router.delete("/{group_id}")
async def delete_group(
    group_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    group_service.delete_group(session, user=user, group_id=group_id)
    return envelope("Group deleted successfully")
