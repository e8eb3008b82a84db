"""
Line-anchored annotations.

Provides:
- Per-panel annotation stores
- The render model (grouping, placement, edit state machine)
- Ratio-based scroll synchronization
"""

from llmbench.core.annotations.store import (
    AnnotationStore,
    AnnotationStores,
)
from llmbench.core.annotations.render_model import (
    AnnotationEditor,
    AnnotationPlacement,
    ContentPart,
    EditMode,
    EditState,
    PanelRenderModel,
    annotated_lines,
    group_by_display_line,
    split_links,
)
from llmbench.core.annotations.scroll_sync import (
    ScrollMetrics,
    ScrollSynchronizer,
    ScrollTarget,
    scroll_ratio,
)

__all__ = [
    # Store
    'AnnotationStore',
    'AnnotationStores',
    # Render model
    'AnnotationEditor',
    'AnnotationPlacement',
    'ContentPart',
    'EditMode',
    'EditState',
    'PanelRenderModel',
    'annotated_lines',
    'group_by_display_line',
    'split_links',
    # Scrolling
    'ScrollMetrics',
    'ScrollSynchronizer',
    'ScrollTarget',
    'scroll_ratio',
]
