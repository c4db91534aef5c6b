"""Chat API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from sparkcall.api.errors import error_response, method_not_allowed
from sparkcall.core.dependencies import get_message_store
from sparkcall.services.chat.models import NewChatMessage
from sparkcall.services.persistence.messages import MessageStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/chat")
async def list_messages(
    chat_id: Optional[str] = Query(default=None, alias="chatId"),
    store: MessageStore = Depends(get_message_store),
):
    """Get messages in a chat, oldest first."""
    if not chat_id:
        return error_response(400, "Chat ID is required")
    messages = await store.list(chat_id)
    return {"success": True, "messages": [message.to_json() for message in messages]}


@router.post("/chat", status_code=201)
async def send_message(
    body: NewChatMessage,
    store: MessageStore = Depends(get_message_store),
):
    """Send a message."""
    logger.info(f"[CHAT API] Message in chat {body.chat_id} from {body.sender_id}")
    message = await store.send(body)
    return {"success": True, "message": "Message sent successfully", "data": message.to_json()}


@router.put("/chat")
async def update_message():
    return method_not_allowed()


@router.delete("/chat")
async def delete_message():
    return method_not_allowed()
