"""Polling chat client."""
import asyncio
import logging
from typing import List, Optional

import httpx

from sparkcall.core.config import settings
from sparkcall.core.exceptions import CallServiceError, ValidationError
from sparkcall.services.chat.models import ChatMessageRecord
from sparkcall.services.http import ApiClient

logger = logging.getLogger(__name__)


class LiveChat:
    """Keeps a local copy of one chat by polling GET /chat."""

    def __init__(
        self,
        user_id: str,
        chat_id: str,
        base_url: Optional[str] = None,
        poll_interval: float = settings.chat_poll_interval,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.user_id = user_id
        self.chat_id = chat_id
        self.poll_interval = poll_interval
        self.api = ApiClient(base_url=base_url, token=token, client=client)
        self.messages: List[ChatMessageRecord] = []
        self.error: Optional[CallServiceError] = None
        self.is_loading = False
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def fetch_messages(self) -> List[ChatMessageRecord]:
        """Replace the local copy with the server's messages."""
        self.is_loading = True
        try:
            data = await self.api.request("GET", "/chat", params={"chatId": self.chat_id})
        finally:
            self.is_loading = False
        self.messages = [ChatMessageRecord.model_validate(m) for m in data.get("messages", [])]
        return self.messages

    async def send_message(self, content: str, receiver_id: str) -> ChatMessageRecord:
        """Send a message and append it locally."""
        content = (content or "").strip()
        if not content or not self.user_id or not receiver_id or not self.chat_id:
            raise ValidationError("Missing required fields for sending message")

        self.is_loading = True
        try:
            data = await self.api.request(
                "POST",
                "/chat",
                json={
                    "senderId": self.user_id,
                    "receiverId": receiver_id,
                    "content": content,
                    "chatId": self.chat_id,
                },
            )
        finally:
            self.is_loading = False
        message = ChatMessageRecord.model_validate(data["data"])
        self.messages.append(message)
        return message

    async def start(self) -> None:
        """Load the chat once, then keep polling in the background."""
        if self.is_connected:
            return
        await self._poll_once()
        self._poll_task = asyncio.create_task(self._poll_forever())
        logger.info(f"[LIVE CHAT] Polling chat {self.chat_id} every {self.poll_interval:g}s")

    async def stop(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def clear_error(self) -> None:
        self.error = None

    async def aclose(self) -> None:
        await self.stop()
        await self.api.aclose()

    async def _poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self._poll_once()

    async def _poll_once(self) -> None:
        try:
            await self.fetch_messages()
        except CallServiceError as e:
            self.error = e
            logger.warning(f"[LIVE CHAT] Poll of chat {self.chat_id} failed: {e.message}")
