"""
Chat Routes - messaging between admin, employees and assigned users.
"""
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from auth import get_current_user
from models import CurrentUser, SendMessageRequest, CreateOrGetChatRequest, ReactionRequest
from service_modules.chat_service import ChatService, get_chat_service

router = APIRouter()


@router.post("/api/chat/send")
async def send_message(
    body: SendMessageRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    """Send a message and push it to the recipient's open sockets."""
    message = await run_in_threadpool(service.send_message, user, body.recipient_id, body.content, body.type)
    await service.push_message(message)
    return {"success": True, "message": "Message sent successfully", "data": message}


@router.post("/api/chat/create-or-get")
def create_or_get_chat(
    body: CreateOrGetChatRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return {"success": True, "data": service.create_or_get_chat(user, body.other_user_id)}


@router.get("/api/chat/chats")
def list_chats(
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return {"success": True, "data": service.list_chats(user)}


@router.get("/api/chat/messages/{chat_id}")
def get_messages(
    chat_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    """Messages of a chat, oldest first. Marks the caller's unread messages as read."""
    return {"success": True, "data": service.get_messages(user, chat_id)}


@router.post("/api/chat/mark-read/{chat_id}")
def mark_read(
    chat_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return {"success": True, "data": service.mark_messages_read(user, chat_id)}


@router.get("/api/chat/unread-count")
def unread_count(
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return {"success": True, "data": {"unreadCount": service.unread_count(user)}}


@router.post("/api/chat/reaction")
def toggle_reaction(
    body: ReactionRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service)
):
    return {"success": True, "data": service.toggle_reaction(user, body.chat_id, body.message_id, body.emoji)}
