from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp

from .base import Connector, OperatorChannel
from ..errors import NotificationDeliveryError
from ..models import OperatorCommand

logger = logging.getLogger(__name__)


class TelegramConnector(Connector, OperatorChannel):
    """Operator channel over the Telegram Bot HTTP API.

    Alerts go to `chat_id`; replies go to whichever chat sent the command.
    Commands are read by long-polling getUpdates.
    """

    def __init__(
        self,
        token: str,
        chat_id: str,
        host: str = "https://api.telegram.org",
        poll_timeout: int = 30,
        retry_delay: float = 5.0,
        config: Optional[Dict[str, Any]] = None,
        limiter=None,
    ) -> None:
        super().__init__(name="telegram", config=config, limiter=limiter)
        self.chat_id = str(chat_id)
        self.poll_timeout = poll_timeout
        self.retry_delay = retry_delay
        self._base = f"{host.rstrip('/')}/bot{token}"
        self._offset: Optional[int] = None

    async def _call(self, method: str, payload: Dict[str, Any], timeout: float) -> Any:
        s = await self.session()
        async with s.post(f"{self._base}/{method}", json=payload, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
            data = await resp.json(content_type=None)
            if not isinstance(data, dict) or not data.get("ok"):
                desc = data.get("description") if isinstance(data, dict) else None
                raise NotificationDeliveryError(f"{method} failed: HTTP {resp.status} {desc or ''}".strip())
            return data.get("result")

    async def send(self, text: str, chat_id: Optional[str] = None) -> None:
        target = str(chat_id) if chat_id is not None else self.chat_id
        if self.limiter:
            await self.limiter.allow("telegram", target)
        try:
            await self._call("sendMessage", {"chat_id": target, "text": text}, timeout=10)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise NotificationDeliveryError(f"sendMessage failed: {type(e).__name__}: {e}") from e

    async def get_updates(self) -> List[OperatorCommand]:
        """Fetch one batch of text messages and acknowledge them via the offset."""
        payload: Dict[str, Any] = {"timeout": self.poll_timeout, "allowed_updates": ["message"]}
        if self._offset is not None:
            payload["offset"] = self._offset
        result = await self._call("getUpdates", payload, timeout=self.poll_timeout + 10)
        out: List[OperatorCommand] = []
        if not isinstance(result, list):
            return out
        for upd in result:
            if not isinstance(upd, dict):
                continue
            upd_id = upd.get("update_id")
            if isinstance(upd_id, int):
                self._offset = upd_id + 1
            msg = upd.get("message")
            if not isinstance(msg, dict):
                continue
            text = msg.get("text")
            chat = msg.get("chat")
            if isinstance(text, str) and text and isinstance(chat, dict) and chat.get("id") is not None:
                out.append(OperatorCommand(chat_id=str(chat["id"]), text=text))
        return out

    async def commands(self) -> AsyncIterator[OperatorCommand]:
        while True:
            try:
                batch = await self.get_updates()
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, NotificationDeliveryError) as e:
                logger.error("Telegram polling failed: %s", e)
                await asyncio.sleep(self.retry_delay)
                continue
            for cmd in batch:
                yield cmd
