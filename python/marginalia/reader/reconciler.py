"""Re-locate persisted highlight anchors in freshly rendered page text.

A rendered page is a sequence of text runs whose boundaries depend on the
layout engine and the zoom level, so anchors are matched by content: the
first run (in render order) containing the anchor's captured text wins.
Results are never cached; callers re-run relocation after every render.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class TextRun:
    """One positioned run of text, as produced by the renderer."""

    index: int
    text: str


@dataclass(frozen=True)
class RunHandle:
    """Where an anchor was found in the current render."""

    page: int
    run_index: int
    text: str


@dataclass(frozen=True)
class Anchor:
    """Client-side view of a persisted highlight."""

    id: UUID
    text: str
    page: int
    color: str
    comment: str | None
    start_offset: int
    end_offset: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Anchor":
        """Build an anchor from a highlight as returned by the API."""

        def _ts(value: Any) -> datetime | None:
            if value is None or isinstance(value, datetime):
                return value
            return datetime.fromisoformat(value)

        return cls(
            id=UUID(str(payload["id"])),
            text=payload["text"],
            page=int(payload["page"]),
            color=payload["color"],
            comment=payload.get("comment"),
            start_offset=int(payload["start_offset"]),
            end_offset=int(payload["end_offset"]),
            created_at=_ts(payload.get("created_at")),
            updated_at=_ts(payload.get("updated_at")),
        )


def text_runs(texts: Iterable[str]) -> list[TextRun]:
    """Number plain strings in render order."""
    return [TextRun(index=i, text=t) for i, t in enumerate(texts)]


def relocate(anchor: Anchor, runs: Sequence[TextRun]) -> RunHandle | None:
    """Find the run holding an anchor's text on the anchor's page.

    Both sides are whitespace-trimmed before the containment test. When the
    same text appears in several runs the first one in render order is used.

    Args:
        anchor: The persisted anchor.
        runs: Text runs of page `anchor.page`, in render order.

    Returns:
        RunHandle for the matching run, or None if the text isn't on the page.
    """
    needle = anchor.text.strip()
    if not needle:
        return None

    for run in runs:
        if needle in run.text.strip():
            return RunHandle(page=anchor.page, run_index=run.index, text=run.text)
    return None
