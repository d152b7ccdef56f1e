import asyncio
from typing import List, Optional, Tuple

import pytest

from pairwatch.connectors.base import OperatorChannel
from pairwatch.errors import NotificationDeliveryError
from pairwatch.models import OperatorCommand


class RecordingChannel(OperatorChannel):
    def __init__(self, commands=(), fail: bool = False):
        self.sent: List[Tuple[str, Optional[str]]] = []
        self.fail = fail
        self._commands = list(commands)

    async def send(self, text, chat_id=None):
        if self.fail:
            raise NotificationDeliveryError("sink unavailable")
        self.sent.append((text, chat_id))

    async def commands(self):
        for cmd in self._commands:
            yield cmd


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def make_channel():
    def _make(commands=(), fail=False):
        cmds = [c if isinstance(c, OperatorCommand) else OperatorCommand(chat_id="42", text=c) for c in commands]
        return RecordingChannel(cmds, fail=fail)
    return _make


async def wait_until(cond, timeout: float = 5.0, step: float = 0.01) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not cond():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(step)


@pytest.fixture
def wait():
    return wait_until
