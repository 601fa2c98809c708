"""Reading session state.

ReadingSession holds what a viewer has open: the document, current page and
zoom, the ordered anchors and the pending text selection. It performs no I/O;
the caller sends requests built here to the API and feeds responses back.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from marginalia.db.models import DEFAULT_HIGHLIGHT_COLOR, HighlightColor
from marginalia.reader.reconciler import Anchor, RunHandle, TextRun, relocate

_DISPLAY_HEX = {
    HighlightColor.yellow: "#ffeb3b",
    HighlightColor.blue: "#2196f3",
    HighlightColor.green: "#4caf50",
    HighlightColor.pink: "#e91e63",
    HighlightColor.orange: "#ff9800",
}

# Display colors keyed by palette name, in palette order
HIGHLIGHT_COLORS: dict[str, str] = {color.value: _DISPLAY_HEX[color] for color in HighlightColor}

DEFAULT_COLOR = DEFAULT_HIGHLIGHT_COLOR.value


@dataclass(frozen=True)
class Selection:
    """Text the user has selected but not yet saved as a highlight."""

    text: str
    page: int
    start_offset: int
    end_offset: int


@dataclass(frozen=True)
class RemovalSnapshot:
    """State needed to undo an optimistic removal."""

    anchor: Anchor
    position: int


class ReadingSession:
    """View state for one open document."""

    def __init__(self, document_id: UUID, *, page: int = 1, scale: float = 1.0):
        self.document_id = document_id
        self.page = page
        self.scale = scale
        self.selection: Selection | None = None
        self.focused_anchor_id: UUID | None = None
        self._anchors: dict[UUID, Anchor] = {}

    @property
    def anchors(self) -> list[Anchor]:
        """Anchors in creation order."""
        return list(self._anchors.values())

    def load(self, anchors: Iterable[Anchor | dict[str, Any]]) -> None:
        """Replace local anchors with the persisted list."""
        self._anchors = {}
        for item in anchors:
            anchor = item if isinstance(item, Anchor) else Anchor.from_payload(item)
            self._anchors[anchor.id] = anchor

    def capture_selection(
        self, text: str, page: int, start_offset: int, end_offset: int
    ) -> Selection | None:
        """Record a selection. Blank selections are ignored."""
        if not text or not text.strip():
            return None
        self.selection = Selection(
            text=text, page=page, start_offset=start_offset, end_offset=end_offset
        )
        return self.selection

    def build_highlight_request(
        self, color: str = DEFAULT_COLOR, comment: str | None = None
    ) -> dict[str, Any]:
        """Turn the pending selection into a create-highlight body and clear it.

        Raises:
            ValueError: If nothing is selected or the color isn't in the palette.
        """
        if self.selection is None:
            raise ValueError("no text selected")
        if color not in HIGHLIGHT_COLORS:
            raise ValueError(f"unknown highlight color: {color}")

        selection, self.selection = self.selection, None
        body: dict[str, Any] = {
            "text": selection.text,
            "page": selection.page,
            "start": selection.start_offset,
            "end": selection.end_offset,
            "color": color,
        }
        if comment is not None:
            body["comment"] = comment
        return body

    def apply_created(self, payload: dict[str, Any]) -> Anchor:
        anchor = Anchor.from_payload(payload)
        self._anchors[anchor.id] = anchor
        return anchor

    def apply_updated(self, payload: dict[str, Any]) -> Anchor:
        """Merge the server's copy of an updated highlight, keeping its position."""
        anchor = Anchor.from_payload(payload)
        self._anchors[anchor.id] = anchor
        return anchor

    def begin_remove(self, anchor_id: UUID) -> RemovalSnapshot:
        """Drop an anchor locally before the server confirms.

        Raises:
            KeyError: If the anchor isn't loaded.
        """
        if anchor_id not in self._anchors:
            raise KeyError(anchor_id)
        position = list(self._anchors).index(anchor_id)
        anchor = self._anchors.pop(anchor_id)
        if self.focused_anchor_id == anchor_id:
            self.focused_anchor_id = None
        return RemovalSnapshot(anchor=anchor, position=position)

    def rollback(self, snapshot: RemovalSnapshot) -> None:
        """Put back an anchor whose removal failed, at its old position."""
        items = list(self._anchors.items())
        items.insert(snapshot.position, (snapshot.anchor.id, snapshot.anchor))
        self._anchors = dict(items)

    def navigate_to(self, anchor_id: UUID) -> Anchor:
        """Switch to the anchor's page and focus it.

        Raises:
            KeyError: If the anchor isn't loaded.
        """
        anchor = self._anchors[anchor_id]
        self.page = anchor.page
        self.focused_anchor_id = anchor_id
        return anchor

    def set_scale(self, scale: float) -> None:
        """Change zoom. Run boundaries change, so pages must be reconciled again."""
        if scale <= 0:
            raise ValueError("scale must be positive")
        self.scale = scale

    def anchors_for_page(self, page: int) -> list[Anchor]:
        return [a for a in self._anchors.values() if a.page == page]

    def reconcile(self, page: int, runs: Sequence[TextRun]) -> dict[UUID, RunHandle]:
        """Locate every anchor on a freshly rendered page.

        Anchors whose text isn't found are left out and stay unhighlighted
        for this render.
        """
        located: dict[UUID, RunHandle] = {}
        for anchor in self.anchors_for_page(page):
            handle = relocate(anchor, runs)
            if handle is not None:
                located[anchor.id] = handle
        return located

