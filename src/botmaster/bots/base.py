"""Base bot: the single choke point every outgoing message goes through.

Concrete bot types (one per chat platform) subclass ``BaseBot`` and only
implement ``_raw_send``; validation, capability gating, middleware and the
result envelope are handled here uniformly.

Every public ``send_*`` method returns an ``asyncio.Task`` resolving to a
``SendResult`` (a list of them for cascades) and accepts a keyword-only
``callback(err, result)`` fed from the same settlement.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from loguru import logger

from botmaster.bots.cascade import prepare_cascade, run_cascade
from botmaster.callbacks import dual_channel
from botmaster.capabilities import CapabilitySet
from botmaster.constants import (
    KIND_ATTACHMENT,
    KIND_QUICK_REPLY,
    KIND_TEXT,
    SENDER_ACTION_TYPING_ON,
)
from botmaster.errors import AdapterError, InvalidArgument
from botmaster.messages import (
    OutgoingMessage,
    SendOptions,
    SendResult,
    as_list,
    build_quick_replies,
    is_attachment,
    required_kinds,
    validate_outgoing_message,
    validate_text_or_attachment,
)
from botmaster.middleware import MiddlewarePipeline

if TYPE_CHECKING:
    from botmaster.config import BotSettings


class BaseBot(ABC):
    """Abstract bot bound to one chat platform.

    Class attributes:
        type:  Bot type name, used in capability errors and middleware
               filters (e.g. ``"messenger"``).
        sends: Capability overrides for the bot type; kinds left out are
               supported.
    """

    type: str = "base"
    sends: Mapping[str, bool] = {}

    def __init__(
        self,
        *,
        id: str | None = None,
        sends: Mapping[str, bool] | None = None,
        middleware: MiddlewarePipeline | None = None,
        credentials: Mapping[str, Any] | None = None,
        config: Mapping[str, Any] | None = None,
    ):
        """
        Args:
            id:          Bot instance id (generated when omitted).
            sends:       Per-instance capability overrides, applied on top
                         of the class-level ``sends``.
            middleware:  Pipeline to run around sends; bots added to a
                         ``Botmaster`` share its pipeline.
            credentials: Platform credentials, for the adapter's use.
            config:      Extra adapter-specific settings.
        """
        self.id = id or f"{self.type}-{uuid4().hex[:8]}"
        self.capabilities = CapabilitySet({**self.sends, **(sends or {})})
        self.middleware = middleware if middleware is not None else MiddlewarePipeline()
        self.credentials = dict(credentials or {})
        self.config = dict(config or {})
        self._associated_update: dict | None = None

    @classmethod
    def from_settings(
        cls, settings: BotSettings, middleware: MiddlewarePipeline | None = None
    ) -> BaseBot:
        """Build a bot from its entry in the botmaster config."""
        return cls(
            id=settings.id,
            sends=settings.sends,
            middleware=middleware,
            credentials=settings.credentials,
            config=settings.extra,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} type={self.type!r} id={self.id!r}>"

    # ------------------------------------------------------------------
    # Adapter interface
    # ------------------------------------------------------------------

    @abstractmethod
    async def _raw_send(self, payload: dict) -> Any:
        """Perform the platform network call for one payload.

        Returns the adapter-native response, which must let
        ``_extract_ids`` find the recipient id and message id.
        """
        ...

    def _extract_ids(self, raw: Any, payload: Mapping[str, Any]) -> tuple[str, str]:
        """Pull ``(recipient_id, message_id)`` out of a raw send response.

        The default reads ``recipient_id``/``message_id`` keys and falls back
        to the payload's recipient. Adapters with other response shapes
        override this.
        """
        if not isinstance(raw, Mapping):
            raise AdapterError(
                f"Bots of type {self.type} returned a {type(raw).__name__} "
                f"response; expected a mapping",
                raw=raw,
            )
        recipient_id = raw.get("recipient_id")
        if not recipient_id:
            recipient = payload.get("recipient") or {}
            recipient_id = recipient.get("id")
        message_id = raw.get("message_id")
        if not recipient_id or not message_id:
            raise AdapterError(
                "adapter response carries no recipient_id or message_id", raw=raw
            )
        return str(recipient_id), str(message_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def create_outgoing_message(
        self, message: Mapping[str, Any] | None = None
    ) -> OutgoingMessage:
        return OutgoingMessage(message)

    def create_outgoing_message_for(self, recipient_id: str) -> OutgoingMessage:
        return OutgoingMessage().add_recipient_by_id(recipient_id)

    def patched_with_update(self, update: dict) -> BaseBot:
        """Return a shallow copy of this bot bound to an incoming update.

        Outgoing middleware sees ``update`` for every send made through the
        returned bot.
        """
        patched = copy.copy(self)
        patched._associated_update = update
        return patched

    @staticmethod
    def _sender_id_of(update: Any) -> str:
        sender = update.get("sender") if isinstance(update, Mapping) else None
        if not isinstance(sender, Mapping) or not sender.get("id"):
            raise InvalidArgument("update.sender.id must be set to reply to an update")
        return sender["id"]

    # ------------------------------------------------------------------
    # Dispatch core
    # ------------------------------------------------------------------

    async def _send_payload(self, payload: dict) -> SendResult:
        """Hand one payload to the adapter and wrap the response."""
        recipient = payload.get("recipient") if isinstance(payload, Mapping) else None
        logger.debug(
            f"{self.type} bot '{self.id}' sending to "
            f"{recipient.get('id') if isinstance(recipient, Mapping) else 'unknown'}"
        )
        raw = await self._raw_send(payload)
        recipient_id, message_id = self._extract_ids(raw, payload)
        return SendResult(
            raw=raw,
            sent_message=payload,
            recipient_id=recipient_id,
            message_id=message_id,
        )

    async def _dispatch(
        self,
        message: Mapping[str, Any],
        send_options: SendOptions | Mapping[str, Any] | None = None,
        update: dict | None = None,
    ) -> SendResult:
        """Validate, gate, run middleware, send and wrap one canonical message."""
        options = SendOptions.coerce(send_options)
        outgoing = OutgoingMessage(message)
        validate_outgoing_message(outgoing)
        self.capabilities.require_all(required_kinds(outgoing), self.type)

        update = update if update is not None else self._associated_update
        if options.ignore_middleware:
            return await self._send_payload(outgoing)

        await self.middleware.run_pre_send(self, update, outgoing)
        result = await self._send_payload(outgoing)
        await self.middleware.run_post_send(self, update, outgoing, result)
        return result

    # ------------------------------------------------------------------
    # Send methods
    # ------------------------------------------------------------------

    @dual_channel
    async def send_message(
        self,
        message: Mapping[str, Any],
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> SendResult:
        """Send a complete canonical message."""
        return await self._dispatch(message, send_options)

    @dual_channel
    async def send_raw(
        self,
        payload: dict,
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> SendResult:
        """Send a platform-native payload as is: no validation, no middleware.

        ``send_options`` is checked like on every other send method but has
        no effect here, since raw payloads never run through middleware.
        """
        SendOptions.coerce(send_options)
        return await self._send_payload(payload)

    @dual_channel
    async def send_message_to(
        self,
        message_body: Mapping[str, Any],
        recipient_id: str,
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> SendResult:
        """Send a message body (``{"text": ...}``, ``{"attachment": ...}``) to a user."""
        if not isinstance(message_body, Mapping):
            raise InvalidArgument("message_body must be a mapping")
        message = self.create_outgoing_message_for(recipient_id)
        message["message"] = copy.deepcopy(dict(message_body))
        return await self._dispatch(message, send_options)

    @dual_channel
    async def send_text_message_to(
        self,
        text: str,
        recipient_id: str,
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> SendResult:
        self.capabilities.require(KIND_TEXT, self.type)
        message = self.create_outgoing_message_for(recipient_id).add_text(text)
        return await self._dispatch(message, send_options)

    @dual_channel
    async def reply(
        self,
        update: dict,
        text_or_attachment: str | Mapping[str, Any],
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> SendResult:
        """Answer the sender of ``update`` with a text or an attachment."""
        recipient_id = self._sender_id_of(update)
        message = self.create_outgoing_message_for(recipient_id)
        if isinstance(text_or_attachment, str):
            self.capabilities.require(KIND_TEXT, self.type)
            message.add_text(text_or_attachment)
        elif is_attachment(text_or_attachment):
            self.capabilities.require(KIND_ATTACHMENT, self.type)
            message.add_attachment(text_or_attachment)
        else:
            raise InvalidArgument(
                "reply needs a text string or an attachment object"
            )
        return await self._dispatch(message, send_options, update=update)

    @dual_channel
    async def send_attachment_to(
        self,
        attachment: Mapping[str, Any],
        recipient_id: str,
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> SendResult:
        self.capabilities.require(KIND_ATTACHMENT, self.type)
        message = self.create_outgoing_message_for(recipient_id).add_attachment(
            attachment
        )
        return await self._dispatch(message, send_options)

    @dual_channel
    async def send_attachment_from_url_to(
        self,
        attachment_type: str,
        url: str,
        recipient_id: str,
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> SendResult:
        """Send an attachment the platform will fetch from ``url``."""
        self.capabilities.require(KIND_ATTACHMENT, self.type)
        message = self.create_outgoing_message_for(
            recipient_id
        ).add_attachment_from_url(attachment_type, url)
        return await self._dispatch(message, send_options)

    @dual_channel
    async def send_default_button_message_to(
        self,
        button_titles: Iterable[str],
        text_or_attachment: str | Mapping[str, Any] | None,
        recipient_id: str,
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> SendResult:
        """Send quick-reply buttons whose payloads equal their titles.

        Args:
            button_titles:      Up to 10 button titles, in display order.
            text_or_attachment: Text shown above the buttons, an attachment,
                                or ``None``/``""`` for buttons only.
            recipient_id:       User to send the buttons to.
        """
        validate_text_or_attachment(text_or_attachment)
        quick_replies = build_quick_replies(button_titles)

        if isinstance(text_or_attachment, str) and text_or_attachment:
            kind = KIND_TEXT
        elif is_attachment(text_or_attachment):
            kind = KIND_ATTACHMENT
        else:
            kind = None

        self.capabilities.require(KIND_QUICK_REPLY, self.type)
        if kind is not None:
            self.capabilities.require(kind, self.type)

        message = self.create_outgoing_message_for(recipient_id)
        if kind == KIND_TEXT:
            message.add_text(text_or_attachment)
        elif kind == KIND_ATTACHMENT:
            message.add_attachment(text_or_attachment)
        message.add_quick_replies(quick_replies)
        return await self._dispatch(message, send_options)

    @dual_channel
    async def send_is_typing_message_to(
        self,
        recipient_id: str,
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> SendResult:
        self.capabilities.require(SENDER_ACTION_TYPING_ON, self.type)
        message = self.create_outgoing_message_for(
            recipient_id
        ).add_typing_on_sender_action()
        return await self._dispatch(message, send_options)

    # ------------------------------------------------------------------
    # Cascades
    # ------------------------------------------------------------------

    @dual_channel
    async def send_cascade(
        self,
        items: Iterable[Mapping[str, Any]],
        recipient_id: str | None = None,
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> list[SendResult]:
        """Send ``{"raw": ...}``/``{"message": ...}`` items one after another.

        Every item is validated before the first one is sent. When
        ``recipient_id`` is given it is set on each ``message`` item.
        """
        options = SendOptions.coerce(send_options)
        prepared = prepare_cascade(items, recipient_id)
        for item in prepared:
            if not item.is_raw:
                self.capabilities.require_all(required_kinds(item.payload), self.type)
        return await run_cascade(self, prepared, options)

    @dual_channel
    async def send_text_cascade_to(
        self,
        texts: Iterable[str],
        recipient_id: str,
        send_options: SendOptions | Mapping[str, Any] | None = None,
    ) -> list[SendResult]:
        options = SendOptions.coerce(send_options)
        texts = as_list(texts, "texts")
        if not all(isinstance(text, str) for text in texts):
            raise InvalidArgument("texts must only contain strings")
        items = [{"message": {"message": {"text": text}}} for text in texts]
        prepared = prepare_cascade(items, recipient_id)
        if prepared:
            self.capabilities.require(KIND_TEXT, self.type)
        return await run_cascade(self, prepared, options)
