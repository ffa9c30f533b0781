"""Bot base class and the cascade sender."""

from botmaster.bots.base import BaseBot

__all__ = ["BaseBot"]
