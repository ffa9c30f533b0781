"""Tests for the outgoing middleware pipeline."""

import pytest

from botmaster.errors import CapabilityError
from botmaster.middleware import MiddlewarePipeline, Next, Phase


class TestRegistration:
    def test_use_appends_in_order(self):
        pipeline = MiddlewarePipeline()

        def first(bot, update, message):
            pass

        def second(bot, update, message):
            pass

        pipeline.use(first)
        pipeline.use(second)
        assert [s.name for s in pipeline.stages] == ["first", "second"]

    def test_use_wrapped_surrounds_chain(self):
        pipeline = MiddlewarePipeline()
        pipeline.use(lambda b, u, m: None, name="inner_pre")
        pipeline.use(lambda b, u, m, r: None, name="inner_post", phase="post")
        pipeline.use_wrapped(lambda b, u, m: None, lambda b, u, m, r: None, name="outer")

        assert [(s.name, s.phase) for s in pipeline.stages] == [
            ("outer", Phase.PRE),
            ("inner_pre", Phase.PRE),
            ("inner_post", Phase.POST),
            ("outer", Phase.POST),
        ]
        assert len(pipeline) == 4

    def test_controller_must_be_callable(self):
        with pytest.raises(TypeError):
            MiddlewarePipeline().use("not callable")

    def test_unknown_phase(self):
        with pytest.raises(ValueError):
            MiddlewarePipeline().use(lambda b, u, m: None, phase="during")


class TestExecution:
    @pytest.mark.asyncio
    async def test_stages_run_in_order_and_mutate(self, bot, text_message):
        calls = []

        def add_signature(b, update, message):
            calls.append("sync")
            message["message"]["text"] += " (sent by bot)"

        async def shout(b, update, message):
            calls.append("async")
            message["message"]["text"] = message["message"]["text"].upper()

        bot.middleware.use(add_signature)
        bot.middleware.use(shout)

        result = await bot.send_message(text_message)

        assert calls == ["sync", "async"]
        assert result.sent_message["message"]["text"] == "HELLO WORLD! (SENT BY BOT)"
        assert bot.sent_payloads[0] is result.sent_message

    @pytest.mark.asyncio
    async def test_post_send_sees_result(self, bot, text_message):
        seen = []
        bot.middleware.use(
            lambda b, update, message, result: seen.append(result.message_id),
            phase=Phase.POST,
        )

        result = await bot.send_message(text_message)

        assert seen == [result.message_id]

    @pytest.mark.asyncio
    async def test_failing_stage_aborts_send(self, bot, dual, text_message):
        calls = []
        error = RuntimeError("blocked by policy")

        def block(b, update, message):
            calls.append("block")
            raise error

        bot.middleware.use(block)
        bot.middleware.use(lambda b, u, m: calls.append("never"))

        awaited, via_callback = await dual(bot.send_message, text_message)

        assert awaited == (error, None)
        assert via_callback == (error, None)
        assert calls == ["block"]
        assert bot.sent_payloads == []

    @pytest.mark.asyncio
    async def test_skip_stops_phase(self, bot, text_message):
        calls = []
        bot.middleware.use(lambda b, u, m: Next.SKIP)
        bot.middleware.use(lambda b, u, m: calls.append("skipped"))

        await bot.send_message(text_message)

        assert calls == []
        assert len(bot.sent_payloads) == 1

    @pytest.mark.asyncio
    async def test_bad_return_value(self, bot, text_message):
        bot.middleware.use(lambda b, u, m: "cancel", name="legacy")
        with pytest.raises(TypeError, match="legacy"):
            await bot.send_message(text_message)
        assert bot.sent_payloads == []

    @pytest.mark.asyncio
    async def test_ignore_middleware(self, bot, text_message):
        calls = []
        bot.middleware.use(lambda b, u, m: calls.append("pre"))
        bot.middleware.use(lambda b, u, m, r: calls.append("post"), phase="post")

        result = await bot.send_message(text_message, {"ignore_middleware": True})

        assert calls == []
        assert result.sent_message == text_message

    @pytest.mark.asyncio
    async def test_capability_checked_before_middleware(self, make_bot, text_message):
        bot = make_bot(sends={"text": False})
        calls = []
        bot.middleware.use(lambda b, u, m: calls.append("pre"))

        with pytest.raises(CapabilityError):
            await bot.send_message(text_message)
        assert calls == []

    @pytest.mark.asyncio
    async def test_bot_type_filters(self, make_bot, text_message):
        calls = []
        bot = make_bot()
        bot.middleware.use(lambda b, u, m: calls.append("other only"), include_bot_types=["other"])
        bot.middleware.use(lambda b, u, m: calls.append("not mock"), exclude_bot_types=["mock"])
        bot.middleware.use(lambda b, u, m: calls.append("mock"), include_bot_types=["mock"])

        await bot.send_message(text_message)

        assert calls == ["mock"]

    @pytest.mark.asyncio
    async def test_patched_bot_passes_update(self, bot, text_message, text_update):
        seen = []
        bot.middleware.use(lambda b, update, m: seen.append(update))

        await bot.send_message(text_message)
        await bot.patched_with_update(text_update).send_message(text_message)

        assert seen == [None, text_update]
        assert bot._associated_update is None
