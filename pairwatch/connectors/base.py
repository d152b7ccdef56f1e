from __future__ import annotations

import abc
from typing import AsyncIterator, Optional, Dict, Any
import aiohttp

from ..models import OperatorCommand


class Connector(abc.ABC):
    """External service connector base: owns one lazily created aiohttp session."""

    name: str

    def __init__(self, name: str, config: Optional[Dict[str, Any]] = None, limiter=None) -> None:
        self.name = name
        self.config = config or {}
        self.limiter = limiter
        self._session: Optional[aiohttp.ClientSession] = None

    async def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()


class NotificationSink(abc.ABC):
    """Capability: deliver text to the operator."""

    @abc.abstractmethod
    async def send(self, text: str, chat_id: Optional[str] = None) -> None:
        """Send `text` to `chat_id` (default: the configured alert target).

        Raises NotificationDeliveryError on failure.
        """
        raise NotImplementedError


class OperatorChannel(NotificationSink):
    """Capability: bidirectional operator channel (replies + inbound commands)."""

    @abc.abstractmethod
    def commands(self) -> AsyncIterator[OperatorCommand]:
        """Yield operator commands in arrival order, forever."""
        raise NotImplementedError
