"""Botmaster: registry of bot instances sharing one middleware pipeline.

Bots added here send through the Botmaster's pipeline, so middleware is
registered once (``use`` / ``use_wrapped``) and applied to every bot,
subject to each stage's bot-type filters.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger

from botmaster.bots.base import BaseBot
from botmaster.config import BotmasterConfig
from botmaster.middleware import MiddlewarePipeline, MiddlewareStage


class Botmaster:
    """Owns bot instances and the middleware they share."""

    def __init__(self) -> None:
        self.middleware = MiddlewarePipeline()
        self._bots: dict[str, BaseBot] = {}

    @classmethod
    def from_config(
        cls,
        config: BotmasterConfig,
        bot_classes: Mapping[str, type[BaseBot]],
    ) -> Botmaster:
        """Instantiate every enabled bot of ``config``.

        Args:
            config:      Loaded botmaster config.
            bot_classes: Bot type name -> ``BaseBot`` subclass.
        """
        botmaster = cls()
        for bot_id, settings in config.get_enabled_bots().items():
            bot_cls = bot_classes.get(settings.type)
            if bot_cls is None:
                raise ValueError(
                    f"Bot '{bot_id}' has unknown type '{settings.type}'"
                )
            botmaster.add_bot(bot_cls.from_settings(settings))
        return botmaster

    # ------------------------------------------------------------------
    # Bots
    # ------------------------------------------------------------------

    @property
    def bots(self) -> list[BaseBot]:
        return list(self._bots.values())

    def add_bot(self, bot: BaseBot) -> BaseBot:
        if bot.id in self._bots:
            raise ValueError(f"Bot '{bot.id}' already added.")
        bot.middleware = self.middleware
        self._bots[bot.id] = bot
        logger.debug(f"Added bot: {bot.id} (type={bot.type})")
        return bot

    def remove_bot(self, bot: BaseBot) -> None:
        if self._bots.pop(bot.id, None) is not None:
            bot.middleware = MiddlewarePipeline()
            logger.debug(f"Removed bot: {bot.id}")

    def get_bot(
        self, *, id: str | None = None, type: str | None = None
    ) -> BaseBot | None:
        """Return the bot with ``id``, or the first bot of ``type``."""
        if id is not None:
            bot = self._bots.get(id)
            if bot is not None and type is not None and bot.type != type:
                return None
            return bot
        if type is not None:
            return next((b for b in self._bots.values() if b.type == type), None)
        raise ValueError("get_bot needs an id or a type")

    def get_bots(self, type: str) -> list[BaseBot]:
        return [b for b in self._bots.values() if b.type == type]

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------

    def use(self, controller: Callable[..., Any], **kwargs: Any) -> MiddlewareStage:
        return self.middleware.use(controller, **kwargs)

    def use_wrapped(
        self,
        before: Callable[..., Any],
        after: Callable[..., Any],
        **kwargs: Any,
    ) -> tuple[MiddlewareStage, MiddlewareStage]:
        return self.middleware.use_wrapped(before, after, **kwargs)
