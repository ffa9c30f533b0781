"""Cross-platform chat-bot layer: one outgoing message shape for every platform."""

from botmaster.botmaster import Botmaster
from botmaster.bots import BaseBot
from botmaster.capabilities import CapabilitySet
from botmaster.errors import (
    AdapterError,
    BotmasterError,
    CapabilityError,
    CascadeValidationError,
    InvalidArgument,
)
from botmaster.messages import OutgoingMessage, SendOptions, SendResult
from botmaster.middleware import MiddlewarePipeline, Next, Phase

__all__ = [
    "AdapterError",
    "BaseBot",
    "Botmaster",
    "BotmasterError",
    "CapabilityError",
    "CapabilitySet",
    "CascadeValidationError",
    "InvalidArgument",
    "MiddlewarePipeline",
    "Next",
    "OutgoingMessage",
    "Phase",
    "SendOptions",
    "SendResult",
]
