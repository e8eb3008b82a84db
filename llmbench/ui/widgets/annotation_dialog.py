"""
Dialog for creating or editing a line annotation.
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtWidgets import (
    QComboBox, QDialog, QDialogButtonBox, QFormLayout, QLabel, QPlainTextEdit,
    QVBoxLayout, QWidget,
)

from llmbench.core.annotations.render_model import EditState
from llmbench.core.models import AnnotationType


class AnnotationDialog(QDialog):
    """
    Type selector plus content box, seeded from an edit state.

    Accepting hands the values back through values(); the caller
    commits them through the panel's AnnotationEditor.
    """

    # Result code when the user deletes the annotation being edited
    DELETE = 2

    def __init__(self, state: EditState, parent: Optional[QWidget] = None):
        super().__init__(parent)
        start, end = state.anchor
        line_ref = f"L{start}-{end}" if end is not None else f"L{start}"
        editing = state.annotation_id is not None
        self.setWindowTitle(f"{'Edit' if editing else 'Add'} annotation ({line_ref})")
        self.setModal(True)
        self.setMinimumWidth(420)

        layout = QVBoxLayout(self)
        form = QFormLayout()

        self.type_combo = QComboBox()
        for annotation_type in AnnotationType:
            self.type_combo.addItem(f"{annotation_type.label} ({annotation_type.prefix})", annotation_type)
        self.type_combo.setCurrentIndex(list(AnnotationType).index(state.initial_type))
        form.addRow(QLabel("Type:"), self.type_combo)

        self.content_edit = QPlainTextEdit()
        self.content_edit.setPlainText(state.initial_content)
        self.content_edit.setPlaceholderText("Add annotation...")
        form.addRow(QLabel("Note:"), self.content_edit)
        layout.addLayout(form)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Save | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        if editing:
            delete_button = buttons.addButton("Delete", QDialogButtonBox.ButtonRole.DestructiveRole)
            delete_button.clicked.connect(lambda: self.done(self.DELETE))
        layout.addWidget(buttons)

    def values(self) -> tuple[AnnotationType, str]:
        return self.type_combo.currentData(), self.content_edit.toPlainText().strip()
