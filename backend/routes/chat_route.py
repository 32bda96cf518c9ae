from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlmodel import Session

from models.auth import User
from models.common import get_session
from routes.deps import current_user, envelope
from services import attachments
from services import chat as chat_service
from utils.logs import time_it

router = APIRouter(prefix="/chat")


@router.post("/messages", status_code=201)
async def send_message(
    receiver_id: str | None = Form(None),
    message: str | None = Form(None),
    attachment: UploadFile | None = File(None),
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    stored = None
    if attachment is not None and attachment.filename:
        stored = await attachments.store_upload(attachment)
    try:
        dm = chat_service.send_message(
            session,
            sender=user,
            receiver_id=receiver_id,
            text=message,
            attachment=stored,
        )
    except Exception:
        attachments.discard(stored)
        raise
    return envelope("Message sent successfully", {"message": dm.to_dict()})


@router.get("/conversations")
@time_it
async def get_conversations(
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    return envelope(
        "Conversations retrieved successfully",
        {"conversations": chat_service.list_conversations(session, user=user)},
    )


@router.get("/conversations/{friend_id}")
async def get_conversation(
    friend_id: str,
    limit: int = Query(chat_service.DEFAULT_PAGE_SIZE, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    messages = chat_service.get_conversation(
        session, user=user, friend_id=friend_id, limit=limit, offset=offset
    )
    # reading the conversation marks what the friend sent as read
    chat_service.mark_read(session, user=user, friend_id=friend_id)
    return envelope(
        "Conversation retrieved successfully",
        {"messages": messages, "hasMore": len(messages) == limit},
    )


@router.post("/conversations/{friend_id}/read")
async def mark_as_read(
    friend_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    updated = chat_service.mark_read(session, user=user, friend_id=friend_id)
    return envelope("Messages marked as read", {"updated": updated})


@router.get("/unread-count")
async def get_unread_count(
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    return envelope(
        "Unread count retrieved successfully",
        {"unreadCount": chat_service.unread_count(session, user=user)},
    )


@router.get("/messages/{message_id}/attachment")
@time_it
async def download_attachment(
    message_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    dm = chat_service.get_attachment(session, user=user, message_id=message_id)
    payload = attachments.build_archive(dm.attachment_path, dm.attachment_name)
    filename = attachments.sanitize_filename(dm.attachment_name)
    return Response(
        content=payload,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
