from __future__ import annotations

import logging
import re
from typing import Any, Optional

from .connectors.base import OperatorChannel
from .errors import NotificationDeliveryError, ValidationError
from .models import OperatorCommand
from .signal.alerts import ThresholdState

logger = logging.getLogger(__name__)

# "/setminlimit 0.8", also "/setminlimit@SomeBot 0.8" as sent in group chats
COMMAND_RE = re.compile(r"^/(setminlimit|setmaxlimit)(?:@\w+)?(?:\s+(.*))?$", re.DOTALL)
NUMBER_RE = re.compile(r"^\d+(\.\d+)?$")


def parse_limit(raw: Any) -> float:
    """Parse a non-negative decimal ("0.8", "2", "12.50"). Raises ValidationError."""
    text = str(raw).strip() if raw is not None else ""
    if not NUMBER_RE.match(text):
        raise ValidationError(f"Invalid value {text!r}: expected a non-negative number, e.g. 0.8")
    return float(text)


class ThresholdControlSurface:
    """Operator commands that adjust the shared threshold band.

    /setminlimit <number>
    /setmaxlimit <number>
    """

    def __init__(self, thresholds: ThresholdState, channel: Optional[OperatorChannel] = None) -> None:
        self.thresholds = thresholds
        self.channel = channel

    def apply(self, text: str) -> Optional[str]:
        """Apply one command and return the reply text.

        Returns None for messages that are not threshold commands. Raises
        ValidationError for a bad argument, leaving the band unchanged.
        """
        m = COMMAND_RE.match(text.strip())
        if m is None:
            return None
        name, arg = m.group(1), m.group(2)
        if arg is None or not arg.strip():
            raise ValidationError(f"Usage: /{name} <number>")
        value = parse_limit(arg)
        if name == "setminlimit":
            band = self.thresholds.set_min(value)
            logger.info("Minimum limit set to %s (band %s..%s)", value, band.min, band.max)
            return f"New minimum limit set: {value}"
        band = self.thresholds.set_max(value)
        logger.info("Maximum limit set to %s (band %s..%s)", value, band.min, band.max)
        return f"New maximum limit set: {value}"

    async def handle(self, command: OperatorCommand) -> Optional[str]:
        try:
            reply = self.apply(command.text)
        except ValidationError as e:
            logger.info("Rejected command %r from %s: %s", command.text, command.chat_id, e)
            reply = str(e)
        if reply is not None and self.channel is not None:
            try:
                await self.channel.send(reply, chat_id=command.chat_id)
            except NotificationDeliveryError as e:
                logger.error("Reply delivery failed: %s", e)
        return reply

    async def run(self) -> None:
        if self.channel is None:
            raise RuntimeError("no operator channel configured")
        async for command in self.channel.commands():
            await self.handle(command)
