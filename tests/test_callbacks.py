"""Tests for the dual awaitable/callback settlement."""

import asyncio

import pytest

from botmaster.callbacks import settle


async def _value(value):
    await asyncio.sleep(0)
    return value


async def _boom():
    raise ValueError("boom")


class TestSettle:
    @pytest.mark.asyncio
    async def test_success_reaches_both(self):
        received = []
        task = settle(_value(7), lambda err, result: received.append((err, result)))

        assert await task == 7
        await asyncio.sleep(0)
        assert received == [(None, 7)]

    @pytest.mark.asyncio
    async def test_failure_reaches_both(self):
        received = []
        task = settle(_boom(), lambda err, result: received.append((err, result)))

        with pytest.raises(ValueError, match="boom") as exc_info:
            await task
        await asyncio.sleep(0)
        assert received == [(exc_info.value, None)]

    @pytest.mark.asyncio
    async def test_callback_alone_drives_the_send(self):
        done = asyncio.get_running_loop().create_future()
        settle(_value("sent"), lambda err, result: done.set_result(result))
        assert await asyncio.wait_for(done, timeout=1.0) == "sent"

    @pytest.mark.asyncio
    async def test_cancellation_reported(self):
        received = []
        task = settle(asyncio.sleep(10), lambda err, result: received.append(err))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)
        assert isinstance(received[0], asyncio.CancelledError)

    @pytest.mark.asyncio
    async def test_callback_must_be_callable(self):
        with pytest.raises(TypeError, match="callable"):
            settle(_value(1), "nope")

    def test_needs_running_loop(self, bot, text_message):
        with pytest.raises(RuntimeError, match="running event loop"):
            bot.send_message(text_message)

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self):
        received = []
        done = asyncio.get_running_loop().create_future()

        async def on_done(err, result):
            await asyncio.sleep(0)
            received.append((err, result))
            done.set_result(None)

        assert await settle(_value(7), on_done) == 7
        await asyncio.wait_for(done, timeout=1.0)
        assert received == [(None, 7)]

    @pytest.mark.asyncio
    async def test_async_callback_sees_failure(self):
        done = asyncio.get_running_loop().create_future()

        async def on_done(err, result):
            done.set_result((err, result))

        task = settle(_boom(), on_done)
        with pytest.raises(ValueError, match="boom"):
            await task
        err, result = await asyncio.wait_for(done, timeout=1.0)
        assert isinstance(err, ValueError) and result is None
