"""Notification hand-off for the alert engine."""

from .base import BaseNotifier
from .console import ConsoleNotifier

__all__ = [
    "BaseNotifier",
    "ConsoleNotifier",
]
