"""Errors raised by the outgoing-message dispatch engine.

Every error is raised inside the send task, so it reaches the caller both
through the awaited task and through the optional completion callback.
"""

from __future__ import annotations

from botmaster.constants import KIND_LABELS

CASCADE_VALIDATION_MESSAGE = "No valid message options specified"


class BotmasterError(Exception):
    """Base class for every error raised by botmaster."""


class CapabilityError(BotmasterError):
    """The bot type does not support a message kind it was asked to send."""

    def __init__(self, bot_type: str, kind: str):
        self.bot_type = bot_type
        self.kind = kind
        label = KIND_LABELS.get(kind, kind)
        super().__init__(f"Bots of type {bot_type} can't send messages with {label}")


class InvalidArgument(BotmasterError, ValueError):
    """Malformed input to a message builder or a send method."""


class CascadeValidationError(InvalidArgument):
    """A cascade item is neither ``{"raw": ...}`` nor ``{"message": ...}``."""

    def __init__(self, message: str = CASCADE_VALIDATION_MESSAGE):
        super().__init__(message)


class AdapterError(BotmasterError):
    """Failure reported by a platform adapter's raw send.

    Adapters may raise this (or anything else); the dispatch core never
    wraps or retries adapter failures.
    """

    def __init__(self, message: str, *, raw=None):
        super().__init__(message)
        self.raw = raw
