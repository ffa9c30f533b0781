"""Cascade sender: ordered multi-message sends to one recipient.

A cascade is validated as a whole before anything is sent, then sent one
item at a time: item ``i + 1`` is not handed to the adapter until item
``i``'s send has completed, since platforms only keep arrival order for
serialized sends. A failure stops the cascade and propagates; items
already sent stay sent and their results are not returned.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from botmaster.errors import CascadeValidationError, InvalidArgument
from botmaster.messages import (
    OutgoingMessage,
    SendOptions,
    SendResult,
    validate_outgoing_message,
)

if TYPE_CHECKING:
    from botmaster.bots.base import BaseBot


@dataclass
class CascadeItem:
    """One validated cascade entry.

    Attributes:
        payload: Raw platform payload (sent verbatim) or canonical message.
        is_raw:  True for ``{"raw": ...}`` items.
    """

    payload: dict
    is_raw: bool


def prepare_cascade(
    items: Iterable[Mapping[str, Any]], recipient_id: str | None = None
) -> list[CascadeItem]:
    """Validate every cascade item up front.

    Raises:
        CascadeValidationError: An item is neither ``{"raw": ...}`` nor
                                ``{"message": ...}``.
        InvalidArgument:        A raw payload has no ``recipient.id`` or a
                                canonical message is malformed.
    """
    if isinstance(items, (str, bytes, Mapping)):
        raise InvalidArgument("cascade items must be a sequence of mappings")

    prepared: list[CascadeItem] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping) or ("raw" in item) == ("message" in item):
            raise CascadeValidationError()

        if "raw" in item:
            raw = item["raw"]
            recipient = raw.get("recipient") if isinstance(raw, Mapping) else None
            if not isinstance(recipient, Mapping) or not recipient.get("id"):
                raise InvalidArgument(
                    f"cascade item {index}: raw payload has no recipient.id"
                )
            prepared.append(CascadeItem(payload=raw, is_raw=True))
            continue

        if not isinstance(item["message"], Mapping):
            raise CascadeValidationError()
        message = OutgoingMessage(item["message"])
        if recipient_id is not None:
            message.add_recipient_by_id(recipient_id)
        validate_outgoing_message(message)
        prepared.append(CascadeItem(payload=message, is_raw=False))

    return prepared


async def run_cascade(
    bot: BaseBot, prepared: list[CascadeItem], options: SendOptions
) -> list[SendResult]:
    """Send prepared items strictly in order and collect their results."""
    results: list[SendResult] = []
    total = len(prepared)
    for index, item in enumerate(prepared, start=1):
        if item.is_raw:
            result = await bot._send_payload(item.payload)
        else:
            result = await bot._dispatch(item.payload, options)
        results.append(result)
        logger.debug(f"Cascade on '{bot.id}': item {index}/{total} sent")
    return results
