"""
Reusable UI widgets for the comparison view.

Provides specialized widgets for:
- Panel text display with diff and annotation highlighting
- Synchronized side-by-side panels
- Annotation editing
"""

from llmbench.ui.widgets.panel_text_edit import (
    PanelColors,
    PanelTextEdit,
    SideBySidePanels,
)
from llmbench.ui.widgets.annotation_dialog import (
    AnnotationDialog,
)

__all__ = [
    'PanelColors',
    'PanelTextEdit',
    'SideBySidePanels',
    'AnnotationDialog',
]
