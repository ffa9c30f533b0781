"""Runtime configuration loader for botmaster.

Loads config.json once, resolves credential references from environment
variables, and exposes typed dataclasses via load_config().

Secret Resolution
-----------------
Credential values that look like ``UPPER_SNAKE_CASE`` strings
(e.g. ``"MESSENGER_PAGE_TOKEN"``) are treated as env-var references and
resolved from ``os.environ``.

Config Location
---------------
``load_config(path)`` reads ``path`` when given, else the file named by
the ``BOTMASTER_CONFIG`` environment variable, else ``configs/config.json``
under the project root. The loaded config is cached; passing a different
``path`` reads that file instead of returning the cached one.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from loguru import logger

from botmaster.constants import CONFIG_ENV_VAR, CONFIG_FILENAME

# Pattern to detect env-var-style values: UPPER_SNAKE_CASE with optional digits
_ENV_VAR_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]{2,}$")

_KNOWN_BOT_KEYS = {"type", "enabled", "sends", "credentials"}


# ──────────────────────────────────────────────────────────────────────
# Secret Resolution
# ──────────────────────────────────────────────────────────────────────


def resolve_secret(value: str) -> str | None:
    """Resolve a potential secret reference.

    If ``value`` looks like an env-var name (UPPER_SNAKE_CASE),
    resolve it from os.environ.

    Returns:
        The resolved secret string, or None if not found.
    """
    if not isinstance(value, str) or not value:
        return value

    if _ENV_VAR_PATTERN.match(value):
        resolved = os.environ.get(value)
        if resolved is None:
            logger.warning(
                f"Secret reference '{value}' not found in environment. "
                f"Set it in .env or export it."
            )
        return resolved

    return value


# ──────────────────────────────────────────────────────────────────────
# Config Dataclasses
# ──────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BotSettings:
    """Configuration for a single bot instance."""

    id: str
    type: str
    enabled: bool = True
    sends: dict[str, bool] = field(default_factory=dict)
    credentials: dict[str, Any] = field(default_factory=dict)  # Already resolved
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class BotmasterConfig:
    """Root config object holding all resolved configuration."""

    bots: dict[str, BotSettings] = field(default_factory=dict)

    def get_bot(self, bot_id: str) -> BotSettings | None:
        """Get a bot's settings by id, or None if not found."""
        return self.bots.get(bot_id)

    def get_enabled_bots(self) -> dict[str, BotSettings]:
        """Return only enabled bots."""
        return {k: v for k, v in self.bots.items() if v.enabled}


# ──────────────────────────────────────────────────────────────────────
# Config Loading
# ──────────────────────────────────────────────────────────────────────

_config: BotmasterConfig | None = None
_config_path: Path | None = None


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where configs/ lives)."""
    current = Path(__file__).resolve().parent
    for _ in range(10):  # safety limit
        if (current / "configs").is_dir():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent
    raise FileNotFoundError(
        f"Could not find project root (looked for 'configs/' directory "
        f"starting from {Path(__file__).resolve().parent})"
    )


def _resolve_config_path(path: str | Path | None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return _find_project_root() / CONFIG_FILENAME


def _load_raw_config(config_path: Path) -> dict[str, Any]:
    """Load and return the raw config.json dict."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        data = json.load(f)

    logger.info(f"Loaded config from {config_path}")
    return data


def parse_config(raw: dict[str, Any]) -> BotmasterConfig:
    """Parse raw config dict into typed BotmasterConfig."""
    bots: dict[str, BotSettings] = {}
    for bot_id, bot_raw in raw.get("bots", {}).items():
        if "type" not in bot_raw:
            raise ValueError(f"Bot '{bot_id}' has no 'type' in config")

        sends = bot_raw.get("sends", {})
        for kind, supported in sends.items():
            if not isinstance(supported, bool):
                raise ValueError(
                    f"Bot '{bot_id}': sends.{kind} must be true or false"
                )

        bots[bot_id] = BotSettings(
            id=bot_id,
            type=bot_raw["type"],
            enabled=bot_raw.get("enabled", True),
            sends=dict(sends),
            credentials={
                name: resolve_secret(value)
                for name, value in bot_raw.get("credentials", {}).items()
            },
            extra={k: v for k, v in bot_raw.items() if k not in _KNOWN_BOT_KEYS},
        )

    return BotmasterConfig(bots=bots)


def load_config(
    path: str | Path | None = None, *, reload: bool = False
) -> BotmasterConfig:
    """Return the singleton BotmasterConfig, loading it on first call.

    Args:
        path:   Explicit config file; a path other than the cached one is
                read afresh. See module docstring for the fallbacks.
        reload: Force re-read from disk (useful for testing).
    """
    global _config, _config_path

    requested = _resolve_config_path(path) if path is not None else None
    stale = requested is not None and requested != _config_path
    if _config is None or reload or stale:
        load_dotenv()  # populate os.environ from .env

        config_path = requested or _resolve_config_path(None)
        raw = _load_raw_config(config_path)
        _config = parse_config(raw)
        _config_path = config_path
        logger.debug(f"Config loaded from {config_path}: {len(_config.bots)} bots")

    return _config
