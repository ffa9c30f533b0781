"""Shared fixtures: a recording mock bot, message fixtures, dual-channel runner."""

import asyncio

import pytest

from botmaster.bots.base import BaseBot


class MockBot(BaseBot):
    """Bot of type ``mock`` that records payloads instead of calling a platform."""

    type = "mock"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.sent_payloads: list[dict] = []
        self.fail_on: dict[int, Exception] = {}  # 1-based send number -> error

    async def _raw_send(self, payload):
        self.sent_payloads.append(payload)
        await asyncio.sleep(0)
        count = len(self.sent_payloads)
        if count in self.fail_on:
            raise self.fail_on[count]
        return {
            "recipient_id": payload["recipient"]["id"],
            "message_id": f"mid.{count}",
        }


# ---------------------------------------------------------------------------
# Bots
# ---------------------------------------------------------------------------


@pytest.fixture
def make_bot():
    """Factory for MockBot instances, e.g. ``make_bot(sends={"text": False})``."""
    return MockBot


@pytest.fixture
def bot():
    return MockBot()


# ---------------------------------------------------------------------------
# Message fixtures (fresh dicts for every test)
# ---------------------------------------------------------------------------


@pytest.fixture
def audio_attachment():
    return {"type": "audio", "payload": {"url": "SOME_AUDIO_URL"}}


@pytest.fixture
def image_attachment():
    return {"type": "image", "payload": {"url": "SOME_IMAGE_URL"}}


@pytest.fixture
def text_message():
    return {"recipient": {"id": "user_id"}, "message": {"text": "Hello World!"}}


@pytest.fixture
def audio_message(audio_attachment):
    return {"recipient": {"id": "user_id"}, "message": {"attachment": audio_attachment}}


@pytest.fixture
def image_message(image_attachment):
    return {"recipient": {"id": "user_id"}, "message": {"attachment": image_attachment}}


@pytest.fixture
def quick_reply_message():
    return {
        "recipient": {"id": "user_id"},
        "message": {
            "quick_replies": [
                {"content_type": "text", "title": "Yes", "payload": "YES"},
                {"content_type": "text", "title": "No", "payload": "NO"},
            ],
        },
    }


@pytest.fixture
def typing_on_message():
    return {"recipient": {"id": "user_id"}, "sender_action": "typing_on"}


@pytest.fixture
def text_update():
    return {
        "sender": {"id": "user_id"},
        "recipient": {"id": "page_id"},
        "timestamp": 1468325836000,
        "message": {"mid": "mid.1468325836000:1", "text": "Hello bot"},
    }


# ---------------------------------------------------------------------------
# Dual channel
# ---------------------------------------------------------------------------


@pytest.fixture
def dual():
    """Run one send with a callback and await it; return both outcomes.

    Returns ``(awaited, via_callback)``, each an ``(error, result)`` pair,
    and checks the callback fired exactly once.
    """

    async def run(send, *args, **kwargs):
        loop = asyncio.get_running_loop()
        settled = loop.create_future()
        calls = []

        def callback(err, result):
            calls.append((err, result))
            if not settled.done():
                settled.set_result((err, result))

        task = send(*args, callback=callback, **kwargs)
        try:
            awaited = (None, await task)
        except Exception as exc:
            awaited = (exc, None)

        via_callback = await asyncio.wait_for(settled, timeout=2.0)
        await asyncio.sleep(0)
        assert len(calls) == 1
        return awaited, via_callback

    return run
