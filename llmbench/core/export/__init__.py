"""
Export module for comparisons.

Provides:
- Structured JSON records with derived word counts
- Formatted plain text and Markdown logs
- The paginated two-column layout used for PDF output

The Qt renderer lives in llmbench.core.export.pdf_writer and is imported
on demand so text exports work without a GUI stack loaded.
"""

from llmbench.core.export.structured import (
    build_export_record,
    export_as_json,
    safe_filename,
)
from llmbench.core.export.text_export import (
    export_as_markdown,
    export_as_text,
)
from llmbench.core.export.layout import (
    DocumentLayout,
    LayoutEngine,
    LayoutStyles,
    MonospaceMeasurer,
    PageGeometry,
    PageSize,
    TextMeasurer,
    layout_comparison,
)

__all__ = [
    # Structured
    'build_export_record',
    'export_as_json',
    'safe_filename',
    # Text
    'export_as_markdown',
    'export_as_text',
    # Layout
    'DocumentLayout',
    'LayoutEngine',
    'LayoutStyles',
    'MonospaceMeasurer',
    'PageGeometry',
    'PageSize',
    'TextMeasurer',
    'layout_comparison',
]
