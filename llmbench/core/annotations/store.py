"""
Per-panel annotation storage.

Each panel owns an independent AnnotationStore; AnnotationStores bundles
the two stores keyed by panel id. Stores hold annotations in creation
order and notify observers after every mutation. Persistence is the
caller's concern.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator, Optional

from llmbench.core.models import (
    Annotation,
    AnnotationType,
    PanelId,
    new_id,
    utc_now_iso,
    validate_anchor,
)


AnnotationObserver = Callable[[PanelId, list[Annotation]], None]


class AnnotationStore:
    """
    Line-anchored annotations for a single panel.

    Usage:
        store = AnnotationStore(PanelId.A)
        ann = store.create(3, 5, AnnotationType.PATTERN, "repeats the opener")
        store.update(ann.id, AnnotationType.CRITIQUE, "revised")
        store.delete(ann.id)
    """

    def __init__(self, panel_id: PanelId | str):
        self.panel_id = PanelId.from_value(panel_id)
        self._annotations: list[Annotation] = []
        self._observers: list[AnnotationObserver] = []

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(list(self._annotations))

    def __contains__(self, annotation_id: object) -> bool:
        return self.get(annotation_id) is not None  # type: ignore[arg-type]

    @property
    def annotations(self) -> list[Annotation]:
        """Snapshot of annotations in creation order."""
        return list(self._annotations)

    def get(self, annotation_id: str) -> Optional[Annotation]:
        """Find an annotation by id."""
        for annotation in self._annotations:
            if annotation.id == annotation_id:
                return annotation
        return None

    def create(
        self,
        start_line: int,
        end_line: Optional[int] = None,
        type: AnnotationType | str = AnnotationType.OBSERVATION,
        content: str = "",
        line_content: str = "",
        added_by: Optional[str] = None
    ) -> Annotation:
        """
        Create and append a new annotation.

        Line numbers past the end of the current text are accepted; the
        display layer treats them as orphaned.

        Args:
            start_line: First annotated line (1-indexed)
            end_line: Last annotated line for block annotations
            type: Annotation category
            content: Free-text body
            line_content: Snapshot of the anchored line text
            added_by: Optional author initials

        Returns:
            The created Annotation

        Raises:
            AnnotationError: If the anchor violates the line invariants
        """
        validate_anchor(start_line, end_line)

        annotation = Annotation(
            id=new_id(),
            panel_id=self.panel_id,
            line_number=start_line,
            end_line_number=end_line,
            type=AnnotationType.from_string(type),
            content=content,
            created_at=utc_now_iso(),
            line_content=line_content,
            added_by=added_by,
        )
        self._annotations.append(annotation)
        logging.debug(
            f"AnnotationStore - Panel {self.panel_id.value}: created {annotation.type.key} "
            f"at {annotation.line_ref}"
        )
        self._notify_observers()
        return annotation

    def update(self, annotation_id: str, type: AnnotationType | str, content: str) -> bool:
        """
        Replace type and content of an existing annotation.

        Returns:
            True if the annotation was found and updated
        """
        annotation = self.get(annotation_id)
        if annotation is None:
            logging.debug(f"AnnotationStore - Panel {self.panel_id.value}: update of unknown id {annotation_id}")
            return False

        annotation.type = AnnotationType.from_string(type)
        annotation.content = content
        self._notify_observers()
        return True

    def delete(self, annotation_id: str) -> bool:
        """
        Remove an annotation by id.

        Returns:
            True if an annotation was removed
        """
        before = len(self._annotations)
        self._annotations = [a for a in self._annotations if a.id != annotation_id]
        removed = len(self._annotations) != before
        if removed:
            self._notify_observers()
        return removed

    def replace_all(self, annotations: Iterable[Annotation]) -> None:
        """
        Replace the whole collection (used when loading a saved session).

        Bypasses create/update; annotations are re-homed to this panel.
        """
        replaced = []
        for annotation in annotations:
            if annotation.panel_id is not self.panel_id:
                annotation.panel_id = self.panel_id
            replaced.append(annotation)
        self._annotations = replaced
        self._notify_observers()

    def clear(self) -> None:
        self.replace_all([])

    def add_observer(self, callback: AnnotationObserver) -> None:
        """Add a callback to be notified of annotation changes."""
        self._observers.append(callback)

    def remove_observer(self, callback: AnnotationObserver) -> None:
        """Remove an annotation change observer."""
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify_observers(self) -> None:
        snapshot = self.annotations
        for callback in self._observers:
            try:
                callback(self.panel_id, snapshot)
            except Exception as e:
                logging.error(f"AnnotationStore - Observer failed: {e}", exc_info=True)


class AnnotationStores:
    """The two independent annotation stores, keyed by panel id."""

    def __init__(self):
        self._stores = {panel: AnnotationStore(panel) for panel in PanelId}

    def __getitem__(self, panel: PanelId | str) -> AnnotationStore:
        return self._stores[PanelId.from_value(panel)]

    def __iter__(self) -> Iterator[AnnotationStore]:
        return iter(self._stores.values())

    @property
    def a(self) -> AnnotationStore:
        return self._stores[PanelId.A]

    @property
    def b(self) -> AnnotationStore:
        return self._stores[PanelId.B]

    def create(
        self,
        panel: PanelId | str,
        start_line: int,
        end_line: Optional[int] = None,
        type: AnnotationType | str = AnnotationType.OBSERVATION,
        content: str = ""
    ) -> Annotation:
        return self[panel].create(start_line, end_line, type, content)

    def update(self, panel: PanelId | str, annotation_id: str, type: AnnotationType | str, content: str) -> bool:
        return self[panel].update(annotation_id, type, content)

    def delete(self, panel: PanelId | str, annotation_id: str) -> bool:
        return self[panel].delete(annotation_id)

    def replace_all(self, panel: PanelId | str, annotations: Iterable[Annotation]) -> None:
        self[panel].replace_all(annotations)

    def clear(self) -> None:
        for store in self._stores.values():
            store.clear()
