from __future__ import annotations


class PairwatchError(Exception):
    """Base class for recoverable monitor errors."""


class TransportError(PairwatchError):
    """Feed connection dropped or the handshake failed."""


class DecodeError(PairwatchError):
    """Inbound frame could not be parsed."""


class NumericError(PairwatchError):
    """Ratio is undefined for a matched pair (zero or non-finite price)."""


class ValidationError(PairwatchError):
    """Operator command argument rejected. The message is shown to the operator."""


class NotificationDeliveryError(PairwatchError):
    """Alert or reply could not be delivered to the operator channel."""
