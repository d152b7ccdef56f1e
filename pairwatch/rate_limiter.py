from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional, Tuple


class TokenBucket:
    """Async token bucket.

    capacity: max tokens (burst size)
    refill_rate: tokens per second
    """

    def __init__(self, capacity: int, refill_rate: float) -> None:
        self.capacity = capacity
        self.refill_rate = refill_rate
        self._tokens = float(capacity)
        self._last = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> float:
        return self._tokens

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last
        self._last = now
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)

    async def consume(self, weight: int = 1) -> None:
        async with self._lock:
            self._refill()
            need = float(weight)
            while self._tokens < need:
                to_wait = (need - self._tokens) / self.refill_rate if self.refill_rate > 0 else 0.05
                await asyncio.sleep(max(to_wait, 0.01))
                self._refill()
            self._tokens -= need


class RateLimiter:
    """Outbound send limits per service.

    Each service has a "global" bucket and a "chat" template; a bucket per
    destination chat is created from the template on first use.

    config example:
    {
      "telegram": {"global": {"capacity": 30, "refill": 30.0}, "chat": {"capacity": 3, "refill": 1.0}}
    }
    """

    def __init__(self, config: Optional[Dict] = None) -> None:
        self._templates: Dict[Tuple[str, str], Tuple[int, float]] = {}
        self._buckets: Dict[Tuple[str, str], TokenBucket] = {}
        if config:
            self.update(config)

    def update(self, config: Dict) -> None:
        for service, scopes in config.items():
            for scope, conf in scopes.items():
                cap = int(conf.get("capacity", 10))
                ref = float(conf.get("refill", 5.0))
                self._templates[(service, scope)] = (cap, ref)
                # per-chat buckets already handed out keep their old limits
                if scope == "global":
                    self._buckets[(service, "global")] = TokenBucket(cap, ref)

    def bucket(self, service: str, chat_id: Optional[str] = None) -> Optional[TokenBucket]:
        if chat_id is None:
            return self._buckets.get((service, "global"))
        key = (service, f"chat:{chat_id}")
        found = self._buckets.get(key)
        if found is None:
            tpl = self._templates.get((service, "chat"))
            if tpl is None:
                return None
            found = self._buckets[key] = TokenBucket(*tpl)
        return found

    async def allow(self, service: str, chat_id: Optional[str] = None, weight: int = 1) -> None:
        """Wait until both the per-chat and the global bucket admit a send."""
        if chat_id is not None:
            per_chat = self.bucket(service, chat_id)
            if per_chat is not None:
                await per_chat.consume(weight)
        glob = self.bucket(service)
        if glob is not None:
            await glob.consume(weight)
