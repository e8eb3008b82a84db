"""
Line-anchored render model.

Projects a panel's annotations onto a line-oriented view without
depending on any widget toolkit:
- Grouping of annotations by display line (end line for blocks)
- Placement of annotation widgets and the inline editor
- Orphaned anchor detection
- The single-edit-surface state machine for each panel
- Splitting annotation content into text and link parts

Views subscribe to the editor and store, then redraw from build().
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Iterable, Optional

from llmbench.core.annotations.store import AnnotationStore
from llmbench.core.models import (
    DEFAULT_ANNOTATION_TYPE,
    Annotation,
    AnnotationType,
)


_URL_PATTERN = re.compile(r'(https?://[^\s]+|www\.[^\s]+)', re.IGNORECASE)


# =============================================================================
# Grouping
# =============================================================================

def group_by_display_line(annotations: Iterable[Annotation]) -> dict[int, list[Annotation]]:
    """
    Group annotations by display line.

    Lines are ordered ascending; annotations sharing a line keep their
    creation order so they render stacked.
    """
    grouped: dict[int, list[Annotation]] = {}
    for annotation in annotations:
        grouped.setdefault(annotation.display_line, []).append(annotation)
    return {line: grouped[line] for line in sorted(grouped)}


def annotated_lines(annotations: Iterable[Annotation]) -> set[int]:
    """All lines covered by any annotation range."""
    lines: set[int] = set()
    for annotation in annotations:
        lines.update(range(annotation.line_number, annotation.display_line + 1))
    return lines


@dataclass(frozen=True)
class ContentPart:
    """Piece of annotation content: plain text or a link."""
    text: str
    href: Optional[str] = None

    @property
    def is_link(self) -> bool:
        return self.href is not None


def split_links(content: str) -> list[ContentPart]:
    """
    Split annotation content into text and link parts.

    URLs starting with 'www.' link to their https:// form but keep the
    original text for display.
    """
    parts: list[ContentPart] = []
    position = 0

    for match in _URL_PATTERN.finditer(content):
        if match.start() > position:
            parts.append(ContentPart(content[position:match.start()]))
        url = match.group(0)
        href = url if url.lower().startswith('http') else f"https://{url}"
        parts.append(ContentPart(url, href))
        position = match.end()

    if position < len(content):
        parts.append(ContentPart(content[position:]))

    return parts


# =============================================================================
# Editing State Machine
# =============================================================================

class EditMode(Enum):
    """Which edit surface, if any, is active on a panel."""
    IDLE = auto()       # No edit in progress
    CREATING = auto()   # New annotation at a pending line/range
    EDITING = auto()    # Existing annotation by id


@dataclass(frozen=True)
class EditState:
    """
    Snapshot of the panel's edit surface.

    line_number is the display line of the editor (end line for ranges);
    start_line_number is set only for ranges.
    """
    mode: EditMode = EditMode.IDLE
    line_number: Optional[int] = None
    start_line_number: Optional[int] = None
    annotation_id: Optional[str] = None
    initial_type: AnnotationType = DEFAULT_ANNOTATION_TYPE
    initial_content: str = ""

    @property
    def is_active(self) -> bool:
        return self.mode is not EditMode.IDLE

    @property
    def anchor(self) -> tuple[Optional[int], Optional[int]]:
        """(start_line, end_line) the pending annotation will be created with."""
        if self.start_line_number is not None:
            return self.start_line_number, self.line_number
        return self.line_number, None


IDLE_STATE = EditState()

EditStateObserver = Callable[[EditState], None]


class AnnotationEditor:
    """
    Single edit surface for one panel.

    Exactly one of idle, creating or editing is active. Starting a new
    edit abandons any uncommitted edit without confirmation; the
    abandoned state is returned so a view may offer a confirmation
    instead.
    """

    def __init__(self, store: AnnotationStore):
        self.store = store
        self._state = IDLE_STATE
        self._observers: list[EditStateObserver] = []

    @property
    def state(self) -> EditState:
        return self._state

    def start_annotation(self, line: int, end_line: Optional[int] = None) -> Optional[EditState]:
        """
        Begin creating an annotation at a line or line range.

        Returns:
            The abandoned edit state, or None if nothing was in progress
        """
        is_range = end_line is not None and end_line != line
        if is_range and end_line < line:
            line, end_line = end_line, line
        new_state = EditState(
            mode=EditMode.CREATING,
            line_number=end_line if is_range else line,
            start_line_number=line if is_range else None,
        )
        return self._transition(new_state)

    def start_edit_annotation(self, annotation_id: str) -> Optional[EditState]:
        """
        Begin editing an existing annotation, loading its type and content.

        Unknown ids leave the current state untouched.

        Returns:
            The abandoned edit state, or None
        """
        annotation = self.store.get(annotation_id)
        if annotation is None:
            logging.debug(f"AnnotationEditor - Cannot edit unknown annotation {annotation_id}")
            return None

        new_state = EditState(
            mode=EditMode.EDITING,
            line_number=annotation.display_line,
            start_line_number=annotation.line_number if annotation.is_block else None,
            annotation_id=annotation.id,
            initial_type=annotation.type,
            initial_content=annotation.content,
        )
        return self._transition(new_state)

    def submit(self, type: AnnotationType | str, content: str) -> Optional[Annotation]:
        """
        Commit the active edit through the store and return to idle.

        Returns:
            The created or updated annotation, or None when idle or the
            edited annotation no longer exists
        """
        state = self._state
        result: Optional[Annotation] = None

        if state.mode is EditMode.EDITING and state.annotation_id:
            if self.store.update(state.annotation_id, type, content):
                result = self.store.get(state.annotation_id)
        elif state.mode is EditMode.CREATING and state.line_number is not None:
            start, end = state.anchor
            result = self.store.create(start, end, type, content)

        self._set_state(IDLE_STATE)
        return result

    def cancel(self) -> None:
        """Discard the active edit."""
        self._set_state(IDLE_STATE)

    def add_observer(self, callback: EditStateObserver) -> None:
        self._observers.append(callback)

    def remove_observer(self, callback: EditStateObserver) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _transition(self, new_state: EditState) -> Optional[EditState]:
        abandoned = self._state if self._state.is_active else None
        if abandoned is not None:
            logging.debug(
                f"AnnotationEditor - Abandoning uncommitted {abandoned.mode.name.lower()} edit "
                f"at line {abandoned.line_number}"
            )
        self._set_state(new_state)
        return abandoned

    def _set_state(self, state: EditState) -> None:
        self._state = state
        for callback in self._observers:
            callback(state)


# =============================================================================
# Placement
# =============================================================================

@dataclass(frozen=True)
class AnnotationPlacement:
    """
    One block widget below a display line.

    Either an annotation (annotation set) or the inline editor
    (is_editor). An annotation being edited is replaced by the editor.
    """
    display_line: int
    annotation: Optional[Annotation] = None
    is_editor: bool = False
    orphaned: bool = False


@dataclass
class PanelRenderModel:
    """
    Display positions for one panel's annotations and edit surface.
    """
    store: AnnotationStore
    editor: Optional[AnnotationEditor] = None
    placements: list[AnnotationPlacement] = field(default_factory=list)

    def build(self, line_count: int) -> list[AnnotationPlacement]:
        """
        Compute placements for a document with line_count lines.

        Orphaned anchors are kept and flagged; the view decides whether
        to show them (for example pinned at the end of the document).
        """
        state = self.editor.state if self.editor else IDLE_STATE
        placements: list[AnnotationPlacement] = []

        for line, group in group_by_display_line(self.store.annotations).items():
            orphaned = line < 1 or line > line_count
            for annotation in group:
                editing = state.mode is EditMode.EDITING and state.annotation_id == annotation.id
                placements.append(AnnotationPlacement(
                    display_line=line,
                    annotation=annotation,
                    is_editor=editing,
                    orphaned=orphaned,
                ))

        if state.mode is EditMode.CREATING and state.line_number is not None:
            line = state.line_number
            orphaned = line < 1 or line > line_count
            insert_at = len(placements)
            for i, placement in enumerate(placements):
                if placement.display_line > line:
                    insert_at = i
                    break
            placements.insert(insert_at, AnnotationPlacement(
                display_line=line,
                is_editor=True,
                orphaned=orphaned,
            ))

        self.placements = placements
        return placements

    def placements_for_line(self, line: int) -> list[AnnotationPlacement]:
        return [p for p in self.placements if p.display_line == line]

    def orphaned(self) -> list[AnnotationPlacement]:
        return [p for p in self.placements if p.orphaned]
