"""
Working session for one comparison.

Holds the prompt, both panel outputs, the per-panel annotation stores
and editors, and the diff toggle. A session can be built into a
Comparison record for saving or export, and restored from one.
"""

from __future__ import annotations

import logging
from typing import Optional

from llmbench.core.annotations.render_model import AnnotationEditor, PanelRenderModel
from llmbench.core.annotations.store import AnnotationStores
from llmbench.core.diff.word_diff import WordDiffResult, compute_word_diff
from llmbench.core.models import (
    DEFAULT_COMPARISON_NAME,
    Comparison,
    PanelId,
    PanelOutput,
    new_id,
    utc_now_iso,
)


class Session:
    """
    Mutable state behind the side-by-side view.

    The comparison id and creation stamp are assigned on first build and
    kept until a new prompt is dispatched or the session is reset.

    Usage:
        session = Session()
        session.apply_dispatch("Write a haiku", output_a, output_b)
        session.stores.create(PanelId.A, 1)
        if session.can_diff:
            diff = session.compute_diff()
        record = session.build_comparison()
    """

    def __init__(self):
        self.stores = AnnotationStores()
        self.editors: dict[PanelId, AnnotationEditor] = {
            panel: AnnotationEditor(self.stores[panel]) for panel in PanelId
        }
        self.name = DEFAULT_COMPARISON_NAME
        self.prompt = ""
        self.outputs: dict[PanelId, Optional[PanelOutput]] = {PanelId.A: None, PanelId.B: None}
        self.diff_enabled = False
        self.comparison_id: Optional[str] = None
        self.created_at: Optional[str] = None

    # === Accessors ===

    def output(self, panel: PanelId | str) -> Optional[PanelOutput]:
        return self.outputs[PanelId.from_value(panel)]

    def editor(self, panel: PanelId | str) -> AnnotationEditor:
        return self.editors[PanelId.from_value(panel)]

    def render_model(self, panel: PanelId | str) -> PanelRenderModel:
        panel = PanelId.from_value(panel)
        return PanelRenderModel(self.stores[panel], self.editors[panel])

    @property
    def can_diff(self) -> bool:
        """Both panels hold successful text."""
        return all(
            output is not None and output.has_text
            for output in self.outputs.values()
        )

    # === Transitions ===

    def apply_dispatch(
        self,
        prompt: str,
        output_a: Optional[PanelOutput],
        output_b: Optional[PanelOutput]
    ) -> None:
        """
        Install the results of a new prompt.

        A new prompt starts a new comparison context: the id and
        creation stamp are cleared, annotations and pending edits are
        discarded.
        """
        self.comparison_id = None
        self.created_at = None
        self._reset_annotations()
        self.prompt = prompt
        self.outputs = {PanelId.A: output_a, PanelId.B: output_b}
        self.diff_enabled = self.diff_enabled and self.can_diff
        logging.debug(f"Session - Dispatch applied (diffable: {self.can_diff})")

    def load(self, comparison: Comparison) -> None:
        """Restore a saved comparison, replacing all session state."""
        for editor in self.editors.values():
            editor.cancel()
        self.comparison_id = comparison.id
        self.created_at = comparison.created_at or None
        self.name = comparison.name or DEFAULT_COMPARISON_NAME
        self.prompt = comparison.prompt
        self.outputs = {PanelId.A: comparison.output_a, PanelId.B: comparison.output_b}
        for panel in PanelId:
            self.stores.replace_all(panel, comparison.annotations(panel))
        self.diff_enabled = self.diff_enabled and self.can_diff
        logging.info(f"Session - Loaded comparison '{self.name}' ({comparison.id})")

    def new(self) -> None:
        """Reset to an empty, unnamed comparison."""
        self.comparison_id = None
        self.created_at = None
        self.name = DEFAULT_COMPARISON_NAME
        self.prompt = ""
        self.outputs = {PanelId.A: None, PanelId.B: None}
        self.diff_enabled = False
        self._reset_annotations()

    def build_comparison(self, now: Optional[str] = None) -> Comparison:
        """
        Snapshot the session as a Comparison record.

        The first build assigns the id and creation stamp; later builds
        reuse them and only move updated_at.

        Args:
            now: ISO timestamp to stamp with (current UTC time by default)
        """
        now = now or utc_now_iso()
        if self.comparison_id is None:
            self.comparison_id = new_id()
        if self.created_at is None:
            self.created_at = now

        return Comparison(
            id=self.comparison_id,
            name=self.name,
            prompt=self.prompt,
            output_a=self.outputs[PanelId.A],
            output_b=self.outputs[PanelId.B],
            annotations_a=self.stores.a.annotations,
            annotations_b=self.stores.b.annotations,
            created_at=self.created_at,
            updated_at=now,
        )

    def compute_diff(self) -> Optional[WordDiffResult]:
        """Word diff of the two panels, or None if either lacks text."""
        if not self.can_diff:
            return None
        return compute_word_diff(self.outputs[PanelId.A].text, self.outputs[PanelId.B].text)

    def _reset_annotations(self) -> None:
        for editor in self.editors.values():
            editor.cancel()
        self.stores.clear()
