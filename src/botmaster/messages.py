# canonical outgoing messages, send results and structural validation

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from botmaster.constants import (
    ATTACHMENT_TYPES,
    KIND_ATTACHMENT,
    KIND_QUICK_REPLY,
    KIND_TEXT,
    MAX_QUICK_REPLIES,
    QUICK_REPLY_CONTENT_TYPE,
    SENDER_ACTION_TYPING_OFF,
    SENDER_ACTION_TYPING_ON,
    SENDER_ACTIONS,
)
from botmaster.errors import InvalidArgument

TEXT_OR_ATTACHMENT_ERROR = (
    'third argument must be a "String", an attachment "Object" or absent'
)
TOO_MANY_BUTTONS_ERROR = (
    f"buttonTitles must be of length {MAX_QUICK_REPLIES} or less"
)


# ---------------------------------------------------------------------------
# Canonical outgoing message
# ---------------------------------------------------------------------------


class OutgoingMessage(dict):
    """Platform-neutral outgoing message.

    Shape::

        {"recipient": {"id": str}, "message": {...}}          # message body
        {"recipient": {"id": str}, "sender_action": str}      # sender action

    The body carries ``text`` or ``attachment`` (never both) and optionally
    ``quick_replies``. Being a ``dict``, an instance compares equal to the
    plain payload it represents; the ``add_*``/``remove_*`` helpers mutate
    in place and return ``self`` so they can be chained.
    """

    def __init__(self, message: Mapping[str, Any] | None = None):
        super().__init__(copy.deepcopy(dict(message)) if message else {})

    def _body(self) -> dict:
        return self.setdefault("message", {})

    def _drop_from_body(self, key: str) -> OutgoingMessage:
        body = self.get("message")
        if body is not None:
            body.pop(key, None)
            if not body:
                del self["message"]
        return self

    @property
    def recipient_id(self) -> str | None:
        recipient = self.get("recipient")
        if isinstance(recipient, Mapping):
            return recipient.get("id")
        return None

    def add_recipient_by_id(self, recipient_id: str) -> OutgoingMessage:
        self["recipient"] = {"id": recipient_id}
        return self

    def add_text(self, text: str) -> OutgoingMessage:
        self._body()["text"] = text
        return self

    def remove_text(self) -> OutgoingMessage:
        return self._drop_from_body("text")

    def add_attachment(self, attachment: Mapping[str, Any]) -> OutgoingMessage:
        self._body()["attachment"] = copy.deepcopy(dict(attachment))
        return self

    def add_attachment_from_url(
        self, attachment_type: str, url: str
    ) -> OutgoingMessage:
        """Attach a media file the platform downloads from ``url``."""
        return self.add_attachment({"type": attachment_type, "payload": {"url": url}})

    def remove_attachment(self) -> OutgoingMessage:
        return self._drop_from_body("attachment")

    def add_quick_replies(
        self, quick_replies: Iterable[Mapping[str, Any]]
    ) -> OutgoingMessage:
        self._body()["quick_replies"] = [dict(qr) for qr in quick_replies]
        return self

    def add_payloadless_quick_replies(self, titles: Iterable[str]) -> OutgoingMessage:
        return self.add_quick_replies(build_quick_replies(titles))

    def remove_quick_replies(self) -> OutgoingMessage:
        return self._drop_from_body("quick_replies")

    def add_sender_action(self, action: str) -> OutgoingMessage:
        self["sender_action"] = action
        return self

    def add_typing_on_sender_action(self) -> OutgoingMessage:
        return self.add_sender_action(SENDER_ACTION_TYPING_ON)

    def add_typing_off_sender_action(self) -> OutgoingMessage:
        return self.add_sender_action(SENDER_ACTION_TYPING_OFF)

    def remove_sender_action(self) -> OutgoingMessage:
        self.pop("sender_action", None)
        return self


# ---------------------------------------------------------------------------
# Send options and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SendOptions:
    """Per-call options accepted by every send method.

    Attributes:
        ignore_middleware: Send the message straight to the adapter without
                           running any middleware stage.
    """

    ignore_middleware: bool = False

    @classmethod
    def coerce(cls, options: SendOptions | Mapping[str, Any] | None) -> SendOptions:
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if isinstance(options, Mapping):
            unknown = set(options) - {"ignore_middleware"}
            if unknown:
                raise InvalidArgument(f"Unknown send options: {sorted(unknown)}")
            return cls(**options)
        raise InvalidArgument(
            f"send_options must be a SendOptions or a mapping, got {type(options).__name__}"
        )


@dataclass
class SendResult:
    """Envelope produced for every physically sent message.

    Attributes:
        raw:          Adapter-native response for the send.
        sent_message: Payload handed to the adapter (after middleware).
        recipient_id: Id of the user the message was delivered to.
        message_id:   Platform id of the sent message.
    """

    raw: Any
    sent_message: dict
    recipient_id: str
    message_id: str


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def is_attachment(value: Any) -> bool:
    """Return True if ``value`` has the shape of an attachment object."""
    return isinstance(value, Mapping) and isinstance(value.get("type"), str)


def validate_text_or_attachment(value: Any) -> None:
    """Accept ``None``, a string or an attachment mapping; reject the rest."""
    if value is None or isinstance(value, str) or is_attachment(value):
        return
    raise InvalidArgument(TEXT_OR_ATTACHMENT_ERROR)


def as_list(values: Any, name: str) -> list:
    """Materialize a sequence argument, refusing strings and mappings."""
    if isinstance(values, (str, bytes, Mapping)) or not isinstance(values, Iterable):
        raise InvalidArgument(
            f"{name} must be a sequence, got {type(values).__name__}"
        )
    return list(values)


def build_quick_replies(titles: Iterable[str]) -> list[dict]:
    """Build text quick replies whose payload is their own title."""
    titles = as_list(titles, "buttonTitles")
    if len(titles) > MAX_QUICK_REPLIES:
        raise InvalidArgument(TOO_MANY_BUTTONS_ERROR)
    if not all(isinstance(title, str) for title in titles):
        raise InvalidArgument("buttonTitles must only contain strings")
    return [
        {"content_type": QUICK_REPLY_CONTENT_TYPE, "title": title, "payload": title}
        for title in titles
    ]


# ---------------------------------------------------------------------------
# Structural validation
# ---------------------------------------------------------------------------


def required_kinds(message: Mapping[str, Any]) -> list[str]:
    """List the capability kinds a canonical message makes use of.

    Quick replies come first so that a button message is rejected for its
    buttons before its text or attachment.
    """
    kinds: list[str] = []
    body = message.get("message") or {}
    if "quick_replies" in body:
        kinds.append(KIND_QUICK_REPLY)
    if "text" in body:
        kinds.append(KIND_TEXT)
    if "attachment" in body:
        kinds.append(KIND_ATTACHMENT)
    action = message.get("sender_action")
    if action:
        kinds.append(action)
    return kinds


def validate_outgoing_message(message: Any) -> None:
    """Raise ``InvalidArgument`` unless ``message`` is a well-formed canonical message."""
    if not isinstance(message, Mapping):
        raise InvalidArgument(
            f"message must be a mapping, got {type(message).__name__}"
        )

    recipient = message.get("recipient")
    if not isinstance(recipient, Mapping) or not recipient.get("id"):
        raise InvalidArgument("message.recipient.id must be set")

    has_body = "message" in message
    action = message.get("sender_action")
    if has_body and action is not None:
        raise InvalidArgument("sender_action can't be sent together with message")
    if action is not None:
        if action not in SENDER_ACTIONS:
            raise InvalidArgument(f"Unknown sender_action: {action!r}")
        return
    if not has_body:
        raise InvalidArgument("message must carry either message or sender_action")

    body = message["message"]
    if not isinstance(body, Mapping):
        raise InvalidArgument("message.message must be a mapping")
    if "text" in body and "attachment" in body:
        raise InvalidArgument("message can't carry both text and attachment")
    if not any(key in body for key in ("text", "attachment", "quick_replies")):
        raise InvalidArgument(
            "message must carry text, attachment or quick_replies"
        )

    if "text" in body and not isinstance(body["text"], str):
        raise InvalidArgument("message.text must be a string")

    if "attachment" in body:
        attachment = body["attachment"]
        if not is_attachment(attachment) or attachment["type"] not in ATTACHMENT_TYPES:
            raise InvalidArgument(
                f"attachment type must be one of {sorted(ATTACHMENT_TYPES)}"
            )
        if not isinstance(attachment.get("payload"), Mapping):
            raise InvalidArgument("attachment.payload must be a mapping")

    if "quick_replies" in body:
        quick_replies = body["quick_replies"]
        if not isinstance(quick_replies, list):
            raise InvalidArgument("message.quick_replies must be a list")
        if len(quick_replies) > MAX_QUICK_REPLIES:
            raise InvalidArgument(
                f"quick_replies must be of length {MAX_QUICK_REPLIES} or less"
            )
