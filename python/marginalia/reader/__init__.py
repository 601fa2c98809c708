"""Client-side reading logic: anchor re-location and session state."""

from marginalia.reader.reconciler import Anchor, RunHandle, TextRun, relocate, text_runs
from marginalia.reader.session import (
    HIGHLIGHT_COLORS,
    ReadingSession,
    RemovalSnapshot,
    Selection,
)

__all__ = [
    "Anchor",
    "RunHandle",
    "TextRun",
    "relocate",
    "text_runs",
    "HIGHLIGHT_COLORS",
    "ReadingSession",
    "RemovalSnapshot",
    "Selection",
]
