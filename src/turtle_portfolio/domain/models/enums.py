"""Enumerations for domain models."""

from enum import Enum


class EntrySignal(str, Enum):
    """Turtle system that generated a position entry."""

    BREAKOUT_20D = "20day_breakout"  # System 1
    BREAKOUT_55D = "55day_breakout"  # System 2


class DataSource(str, Enum):
    """Which tier produced a reconciled portfolio view."""

    BROKER = "BROKER"
    STORE = "STORE"
    PLACEHOLDER = "PLACEHOLDER"
