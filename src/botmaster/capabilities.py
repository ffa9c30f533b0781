"""Capability registry: which message kinds a bot type can send.

A capability set is plain data handed to a bot at construction time:
a mapping from kind (``text``, ``attachment``, ``quick_reply``,
``typing_on``, ...) to a boolean. Unlisted kinds default to supported.
The set is read-only afterwards, so concurrent sends may consult it
freely.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from botmaster.constants import DEFAULT_SENDS
from botmaster.errors import CapabilityError


class CapabilitySet(Mapping):
    """Immutable ``kind -> supported`` mapping with a send gate."""

    def __init__(self, sends: Mapping[str, bool] | None = None):
        merged = dict(DEFAULT_SENDS)
        for kind, supported in (sends or {}).items():
            if not isinstance(supported, bool):
                raise TypeError(
                    f"Capability '{kind}' must be a bool, got {type(supported).__name__}"
                )
            merged[kind] = supported
        self._sends = MappingProxyType(merged)

    def supports(self, kind: str) -> bool:
        """Return whether ``kind`` may be sent. Unknown kinds are supported."""
        return self._sends.get(kind, True)

    def require(self, kind: str, bot_type: str) -> None:
        """Raise ``CapabilityError`` if ``kind`` is not supported."""
        if not self.supports(kind):
            raise CapabilityError(bot_type, kind)

    def require_all(self, kinds: Iterable[str], bot_type: str) -> None:
        """Gate every kind in order; the first unsupported one raises."""
        for kind in kinds:
            self.require(kind, bot_type)

    def __getitem__(self, kind: str) -> bool:
        return self._sends[kind]

    def __iter__(self) -> Iterator[str]:
        return iter(self._sends)

    def __len__(self) -> int:
        return len(self._sends)

    def __repr__(self) -> str:
        return f"CapabilitySet({dict(self._sends)!r})"
