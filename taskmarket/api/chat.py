# taskmarket/api/chat.py

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from taskmarket.api.deps import get_current_user_id, unit_of_work
from taskmarket.core.db import get_db
from taskmarket.schemas.chat import ChatInboxItem, ChatMessageCreate, ChatMessageRead
from taskmarket.services import chat_service
from taskmarket.services.chat_service import ChatRoomNotFound

router = APIRouter()


@router.get("/chats", response_model=list[ChatInboxItem])
def get_chat_inbox(db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    return chat_service.get_chat_inbox(db, user_id)


@router.get("/chats/{room_id}/messages", response_model=list[ChatMessageRead])
def list_messages(
    room_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    try:
        return chat_service.list_messages(db, user_id, room_id)
    except ChatRoomNotFound:
        raise HTTPException(status_code=404, detail="Chat room not found")


@router.post("/chats/{room_id}/messages", response_model=ChatMessageRead, status_code=status.HTTP_201_CREATED)
def send_message(
    room_id: UUID,
    data: ChatMessageCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    try:
        with unit_of_work(db):
            msg = chat_service.send_message(db, user_id, room_id, data.text)
    except ChatRoomNotFound:
        raise HTTPException(status_code=404, detail="Chat room not found")
    return msg


@router.post("/chats/{room_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_room_read(
    room_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    try:
        with unit_of_work(db):
            chat_service.mark_room_read(db, user_id, room_id)
    except ChatRoomNotFound:
        raise HTTPException(status_code=404, detail="Chat room not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
