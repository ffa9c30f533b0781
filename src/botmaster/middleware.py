"""Outgoing middleware pipeline.

Stages are run strictly in registration order around every send that does
not opt out with ``ignore_middleware``:

    pre-send stages   controller(bot, update, message)
    adapter raw send
    post-send stages  controller(bot, update, message, result)

``update`` is the incoming update the send answers (``None`` for sends not
triggered by one). Controllers may be plain or ``async`` functions and may
mutate ``message`` in place. A controller returns ``None`` (or
``Next.CONTINUE``) to pass on, ``Next.SKIP`` to skip the remaining stages
of its phase, or raises to abort the send; the exception reaches the caller
unchanged and no later stage or adapter call runs.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from botmaster.bots.base import BaseBot
    from botmaster.messages import SendResult


class Next(Enum):
    """Outcome a controller may return to steer the pipeline."""

    CONTINUE = "continue"
    SKIP = "skip"


class Phase(str, Enum):
    PRE = "pre"
    POST = "post"


@dataclass(frozen=True)
class MiddlewareStage:
    """One registered controller.

    Attributes:
        controller:        Callable run for each send.
        name:              Label used in logs.
        phase:             ``Phase.PRE`` (before the adapter) or ``Phase.POST``.
        include_bot_types: Only run for these bot types (``None`` = all).
        exclude_bot_types: Never run for these bot types.
    """

    controller: Callable[..., Any]
    name: str
    phase: Phase = Phase.PRE
    include_bot_types: frozenset[str] | None = None
    exclude_bot_types: frozenset[str] = frozenset()

    def applies_to(self, bot_type: str) -> bool:
        if bot_type in self.exclude_bot_types:
            return False
        return self.include_bot_types is None or bot_type in self.include_bot_types


class MiddlewarePipeline:
    """Ordered pre-send and post-send stages shared by one or more bots."""

    def __init__(self) -> None:
        self._pre: list[MiddlewareStage] = []
        self._post: list[MiddlewareStage] = []

    @property
    def stages(self) -> list[MiddlewareStage]:
        """All stages, pre-send first, each phase in run order."""
        return [*self._pre, *self._post]

    def __len__(self) -> int:
        return len(self._pre) + len(self._post)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @staticmethod
    def _make_stage(
        controller: Callable[..., Any],
        name: str | None,
        phase: Phase | str,
        include_bot_types: Iterable[str] | None,
        exclude_bot_types: Iterable[str] | None,
    ) -> MiddlewareStage:
        if not callable(controller):
            raise TypeError("middleware controller must be callable")
        return MiddlewareStage(
            controller=controller,
            name=name or getattr(controller, "__name__", repr(controller)),
            phase=Phase(phase),
            include_bot_types=(
                frozenset(include_bot_types) if include_bot_types is not None else None
            ),
            exclude_bot_types=frozenset(exclude_bot_types or ()),
        )

    def use(
        self,
        controller: Callable[..., Any],
        *,
        name: str | None = None,
        phase: Phase | str = Phase.PRE,
        include_bot_types: Iterable[str] | None = None,
        exclude_bot_types: Iterable[str] | None = None,
    ) -> MiddlewareStage:
        """Append a stage to the end of its phase."""
        stage = self._make_stage(
            controller, name, phase, include_bot_types, exclude_bot_types
        )
        chain = self._pre if stage.phase is Phase.PRE else self._post
        chain.append(stage)
        logger.debug(f"Registered {stage.phase.value}-send middleware '{stage.name}'")
        return stage

    def use_wrapped(
        self,
        before: Callable[..., Any],
        after: Callable[..., Any],
        *,
        name: str | None = None,
        include_bot_types: Iterable[str] | None = None,
        exclude_bot_types: Iterable[str] | None = None,
    ) -> tuple[MiddlewareStage, MiddlewareStage]:
        """Wrap the whole chain: ``before`` runs first, ``after`` runs last."""
        pre = self._make_stage(
            before, name, Phase.PRE, include_bot_types, exclude_bot_types
        )
        post = self._make_stage(
            after, name, Phase.POST, include_bot_types, exclude_bot_types
        )
        self._pre.insert(0, pre)
        self._post.append(post)
        logger.debug(f"Registered wrapping middleware '{pre.name}'")
        return pre, post

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run_pre_send(
        self, bot: BaseBot, update: dict | None, message: dict
    ) -> None:
        await self._run(self._pre, bot, update, message)

    async def run_post_send(
        self,
        bot: BaseBot,
        update: dict | None,
        message: dict,
        result: SendResult,
    ) -> None:
        await self._run(self._post, bot, update, message, result)

    @staticmethod
    async def _run(
        stages: list[MiddlewareStage], bot: BaseBot, *args: Any
    ) -> None:
        # snapshot so a stage registering another stage can't reorder this run
        for stage in list(stages):
            if not stage.applies_to(bot.type):
                continue
            outcome = stage.controller(bot, *args)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            if outcome is Next.SKIP:
                break
            if outcome is not None and outcome is not Next.CONTINUE:
                raise TypeError(
                    f"middleware '{stage.name}' returned {outcome!r}; "
                    f"expected None, Next.CONTINUE or Next.SKIP"
                )
