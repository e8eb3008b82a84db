"""
Paginated two-column layout for PDF export.

Lays out a comparison on fixed-size pages, in millimetres:
- Title, creation stamp and the prompt across the full width
- Panel A and panel B side by side in fixed-width columns
- Inline diff highlighting that follows segment boundaries exactly
- Annotation badges below the taller column
- Footer

The engine is pure: text widths come from a TextMeasurer and the result
is a list of pages holding positioned draw operations, so the same
layout can be rendered by any backend (see pdf_writer) or inspected in
tests. A wrapped line is always placed whole on one page.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Protocol, Sequence

from llmbench import APP_NAME
from llmbench.core.diff.word_diff import WordDiffResult
from llmbench.core.export.text_export import format_timestamp, provenance_summary
from llmbench.core.models import (
    DEFAULT_COMPARISON_NAME,
    Annotation,
    Comparison,
    DiffSegment,
    PanelId,
    PanelOutput,
    SegmentType,
)


RGB = tuple[int, int, int]

POINT_MM = 25.4 / 72

# Newline, horizontal whitespace run, or a run of non-whitespace
_WRAP_TOKEN_PATTERN = re.compile(r'\n|[^\S\n]+|\S+')


# =============================================================================
# Geometry and Styles
# =============================================================================

class PageSize(Enum):
    """Supported paper sizes (width, height in mm)."""
    A4 = (210.0, 297.0)
    LETTER = (215.9, 279.4)

    @property
    def width(self) -> float:
        return self.value[0]

    @property
    def height(self) -> float:
        return self.value[1]

    @classmethod
    def from_string(cls, value: str) -> 'PageSize':
        try:
            return cls[str(value).upper()]
        except KeyError:
            return cls.A4


@dataclass(frozen=True)
class PageGeometry:
    """Page dimensions and spacing, in millimetres."""
    page_size: PageSize = PageSize.A4
    margin: float = 15.0
    column_gap: float = 6.0

    @property
    def width(self) -> float:
        return self.page_size.width

    @property
    def height(self) -> float:
        return self.page_size.height

    @property
    def content_top(self) -> float:
        return self.margin

    @property
    def content_bottom(self) -> float:
        return self.height - self.margin

    @property
    def content_width(self) -> float:
        return self.width - self.margin * 2

    @property
    def column_width(self) -> float:
        return (self.content_width - self.column_gap) / 2

    def column_x(self, panel: PanelId) -> float:
        if panel is PanelId.A:
            return self.margin
        return self.margin + self.column_width + self.column_gap


@dataclass(frozen=True)
class TextStyle:
    """Font selection for a run of text."""
    size: float = 9.0          # points
    bold: bool = False
    italic: bool = False
    family: str = "Helvetica"

    @property
    def size_mm(self) -> float:
        return self.size * POINT_MM


@dataclass(frozen=True)
class LayoutStyles:
    """Fonts, line heights (mm) and colors used by the layout."""
    title: TextStyle = TextStyle(18, bold=True)
    meta: TextStyle = TextStyle(9)
    heading: TextStyle = TextStyle(12, bold=True)
    panel_header: TextStyle = TextStyle(11, bold=True)
    provenance: TextStyle = TextStyle(8)
    body: TextStyle = TextStyle(9)
    badge: TextStyle = TextStyle(7, bold=True)
    annotation: TextStyle = TextStyle(9)
    footer: TextStyle = TextStyle(8, italic=True)

    title_line_height: float = 10.0
    meta_line_height: float = 5.0
    heading_line_height: float = 6.0
    body_line_height: float = 4.5
    annotation_line_height: float = 4.0

    text_color: RGB = (30, 30, 30)
    heading_color: RGB = (0, 0, 0)
    meta_color: RGB = (120, 120, 120)
    error_color: RGB = (200, 0, 0)
    rule_color: RGB = (200, 200, 200)
    annotation_text_color: RGB = (80, 80, 80)
    footer_color: RGB = (150, 150, 150)
    badge_text_color: RGB = (255, 255, 255)
    removed_background: RGB = (254, 202, 202)
    added_background: RGB = (187, 247, 208)

    badge_width: float = 10.0
    badge_height: float = 4.5
    badge_text_offset: float = 13.0


class TextMeasurer(Protocol):
    """Measures rendered text width in millimetres."""

    def width(self, text: str, style: TextStyle) -> float:
        ...


class MonospaceMeasurer:
    """
    Measurer assuming every character advances the same fraction of the
    font size. Used when no font backend is available, and in tests.
    """

    def __init__(self, em_ratio: float = 0.5):
        self.em_ratio = em_ratio

    def width(self, text: str, style: TextStyle) -> float:
        return len(text) * style.size_mm * self.em_ratio


# =============================================================================
# Layout Output
# =============================================================================

@dataclass(frozen=True)
class TextItem:
    """Text drawn with its line box top-left at (x, y)."""
    x: float
    y: float
    text: str
    style: TextStyle
    color: RGB
    line_height: float
    width: float = 0.0
    background: Optional[RGB] = None


@dataclass(frozen=True)
class RectItem:
    """Filled (optionally rounded) rectangle."""
    x: float
    y: float
    width: float
    height: float
    fill: RGB
    radius: float = 0.0


@dataclass(frozen=True)
class RuleItem:
    """Horizontal rule."""
    x1: float
    x2: float
    y: float
    color: RGB


@dataclass(frozen=True)
class PlacedLine:
    """A laid-out line: which page, which region, and its vertical box."""
    page: int
    region: str
    y: float
    height: float
    text: str


@dataclass
class Page:
    """One page of positioned draw operations."""
    number: int
    items: list = field(default_factory=list)

    @property
    def text_items(self) -> list[TextItem]:
        return [i for i in self.items if isinstance(i, TextItem)]

    @property
    def text(self) -> str:
        return "\n".join(i.text for i in self.text_items)


@dataclass
class DocumentLayout:
    """Result of laying out a comparison."""
    geometry: PageGeometry
    pages: list[Page] = field(default_factory=list)
    lines: list[PlacedLine] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def lines_in(self, region: str) -> list[PlacedLine]:
        return [line for line in self.lines if line.region == region]


# =============================================================================
# Word Wrapping
# =============================================================================

@dataclass(frozen=True)
class Run:
    """Part of a wrapped line sharing one highlight state."""
    text: str
    x: float
    width: float
    highlighted: bool = False


@dataclass
class WrappedLine:
    """One visual line: runs positioned relative to the column's left edge."""
    runs: list[Run] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)

    @property
    def width(self) -> float:
        if not self.runs:
            return 0.0
        last = self.runs[-1]
        return last.x + last.width

    def add(self, text: str, x: float, width: float, highlighted: bool) -> None:
        if self.runs and self.runs[-1].highlighted == highlighted:
            last = self.runs[-1]
            self.runs[-1] = Run(last.text + text, last.x, last.width + width, highlighted)
        else:
            self.runs.append(Run(text, x, width, highlighted))


def wrap_segments(
    segments: Sequence[DiffSegment],
    max_width: float,
    measurer: TextMeasurer,
    style: TextStyle,
    unique_type: Optional[SegmentType] = None
) -> list[WrappedLine]:
    """
    Word-wrap diff segments into lines of at most max_width.

    Each token is measured; a token that does not fit the remaining
    width starts a new line. Tokens whose segment type equals
    unique_type are highlighted; common tokens never are. Newlines force
    a break and reset to the left edge. Whitespace that would begin a
    wrapped line or run past the column edge is dropped; a token wider
    than the column is broken by characters.

    Args:
        segments: Segments in display order
        max_width: Column width in mm
        measurer: Text measurer
        style: Style the tokens are drawn in
        unique_type: Segment type highlighted in this column

    Returns:
        Wrapped lines (at least one)
    """
    lines = [WrappedLine()]
    x = 0.0
    wrapped = False
    break_pending = False

    def new_line(soft: bool) -> None:
        nonlocal x, wrapped, break_pending
        lines.append(WrappedLine())
        x = 0.0
        wrapped = soft
        break_pending = False

    for segment in segments:
        highlighted = unique_type is not None and segment.type is unique_type
        for token in _WRAP_TOKEN_PATTERN.findall(segment.text):
            if token == '\n':
                new_line(soft=False)
                continue

            width = measurer.width(token, style)

            if token.isspace():
                if x == 0.0 and wrapped:
                    continue
                if x + width > max_width:
                    if x > 0.0:
                        break_pending = True
                    continue
                lines[-1].add(token, x, width, highlighted)
                x += width
                continue

            if break_pending or (x + width > max_width and x > 0.0):
                new_line(soft=True)

            if width <= max_width:
                lines[-1].add(token, x, width, highlighted)
                x += width
                continue

            for chunk, chunk_width in _split_oversized(token, max_width, measurer, style):
                if x > 0.0 and x + chunk_width > max_width:
                    new_line(soft=True)
                lines[-1].add(chunk, x, chunk_width, highlighted)
                x += chunk_width

    return lines


def wrap_text(
    text: str,
    max_width: float,
    measurer: TextMeasurer,
    style: TextStyle
) -> list[WrappedLine]:
    """Word-wrap plain text (no highlighting)."""
    return wrap_segments([DiffSegment(text, SegmentType.COMMON)], max_width, measurer, style)


def _split_oversized(
    token: str,
    max_width: float,
    measurer: TextMeasurer,
    style: TextStyle
) -> list[tuple[str, float]]:
    """Break a token wider than max_width into chunks that fit."""
    chunks: list[tuple[str, float]] = []
    current = ""
    current_width = 0.0

    for char in token:
        char_width = measurer.width(char, style)
        if current and current_width + char_width > max_width:
            chunks.append((current, current_width))
            current, current_width = "", 0.0
        current += char
        current_width += char_width

    if current:
        chunks.append((current, current_width))
    return chunks


# =============================================================================
# Layout Engine
# =============================================================================

@dataclass
class _Cursor:
    """Vertical position of a flow: page index and y (mm)."""
    page: int
    y: float

    def key(self) -> tuple[int, float]:
        return (self.page, self.y)


class LayoutEngine:
    """
    Lays out a comparison as paginated two-column pages.

    Usage:
        engine = LayoutEngine(MonospaceMeasurer())
        layout = engine.layout(comparison, compute_word_diff(a, b))
    """

    def __init__(
        self,
        measurer: TextMeasurer,
        geometry: Optional[PageGeometry] = None,
        styles: Optional[LayoutStyles] = None
    ):
        self.measurer = measurer
        self.geometry = geometry or PageGeometry()
        self.styles = styles or LayoutStyles()
        self._document: Optional[DocumentLayout] = None

    # === Public API ===

    def layout(
        self,
        comparison: Comparison,
        diff: Optional[WordDiffResult] = None
    ) -> DocumentLayout:
        """
        Produce the paginated layout.

        Diff segments are used only when both panels hold successful
        text; otherwise each panel renders its own text unhighlighted.

        Args:
            comparison: Comparison to render
            diff: Optional precomputed word diff

        Returns:
            DocumentLayout with at least one page
        """
        geometry = self.geometry
        styles = self.styles
        self._document = DocumentLayout(geometry=geometry, pages=[Page(1)])
        cursor = _Cursor(0, geometry.content_top)

        # Title and metadata
        self._place_lines(
            cursor, "title",
            wrap_text(comparison.name or DEFAULT_COMPARISON_NAME, geometry.content_width, self.measurer, styles.title),
            geometry.margin, styles.title, styles.heading_color, styles.title_line_height,
        )
        if comparison.created_at:
            self._place_lines(
                cursor, "meta",
                wrap_text(f"Created: {format_timestamp(comparison.created_at)}",
                          geometry.content_width, self.measurer, styles.meta),
                geometry.margin, styles.meta, styles.meta_color, styles.meta_line_height,
            )

        # Prompt
        self._place_lines(
            cursor, "heading",
            wrap_text("Prompt", geometry.content_width, self.measurer, styles.heading),
            geometry.margin, styles.heading, styles.heading_color, styles.heading_line_height,
        )
        if comparison.prompt:
            self._place_lines(
                cursor, "prompt",
                wrap_text(comparison.prompt, geometry.content_width, self.measurer, styles.body),
                geometry.margin, styles.body, styles.text_color, styles.body_line_height,
            )
        cursor.y += styles.body_line_height

        # Side-by-side columns, each advancing independently
        use_diff = diff is not None and comparison.has_both_texts
        column_ends = []
        for panel, output, _ in comparison.iter_panels():
            column_cursor = _Cursor(cursor.page, cursor.y)
            segments = diff.segments(panel.value) if use_diff else None
            self._layout_column(column_cursor, panel, output, segments)
            column_ends.append(column_cursor)

        cursor = max(column_ends, key=_Cursor.key)
        cursor = _Cursor(cursor.page, cursor.y + styles.body_line_height)

        # Annotations below the taller column
        for panel, _, annotations in comparison.iter_panels():
            if annotations:
                self._layout_annotations(cursor, panel, annotations)

        # Footer
        self._place_lines(
            cursor, "footer",
            wrap_text(f"Exported from {APP_NAME}", geometry.content_width, self.measurer, styles.footer),
            geometry.margin, styles.footer, styles.footer_color, styles.meta_line_height,
        )

        document = self._document
        self._document = None
        return document

    # === Sections ===

    def _layout_column(
        self,
        cursor: _Cursor,
        panel: PanelId,
        output: Optional[PanelOutput],
        segments: Optional[list[DiffSegment]]
    ) -> None:
        """Header, rule and body of one column."""
        geometry = self.geometry
        styles = self.styles
        x = geometry.column_x(panel)
        width = geometry.column_width
        region = f"panel_{panel.value}"

        self._place_lines(
            cursor, f"{region}_header",
            wrap_text(f"Panel {panel.value}", width, self.measurer, styles.panel_header),
            x, styles.panel_header, styles.heading_color, styles.heading_line_height,
        )
        summary = provenance_summary(output)
        if summary:
            self._place_lines(
                cursor, f"{region}_header",
                wrap_text(summary, width, self.measurer, styles.provenance),
                x, styles.provenance, styles.meta_color, styles.annotation_line_height,
            )

        self._ensure_room(cursor, 2.0)
        self._page(cursor.page).items.append(RuleItem(x, x + width, cursor.y + 0.5, styles.rule_color))
        cursor.y += 2.0

        if output is None:
            return

        if output.is_error:
            lines = wrap_text(f"Error: {output.error}", width, self.measurer, styles.body)
            self._place_lines(cursor, region, lines, x, styles.body, styles.error_color, styles.body_line_height)
            return

        if segments is not None:
            unique_type = SegmentType.REMOVED if panel is PanelId.A else SegmentType.ADDED
            background = styles.removed_background if panel is PanelId.A else styles.added_background
            lines = wrap_segments(segments, width, self.measurer, styles.body, unique_type)
        else:
            background = None
            lines = wrap_text(output.text, width, self.measurer, styles.body) if output.text else []

        self._place_lines(
            cursor, region, lines, x, styles.body, styles.text_color,
            styles.body_line_height, highlight=background,
        )

    def _layout_annotations(
        self,
        cursor: _Cursor,
        panel: PanelId,
        annotations: Iterable[Annotation]
    ) -> None:
        """Section title then one badge line per annotation."""
        geometry = self.geometry
        styles = self.styles
        region = f"annotations_{panel.value}"

        self._place_lines(
            cursor, region,
            wrap_text(f"Annotations (Panel {panel.value})", geometry.content_width, self.measurer, styles.heading),
            geometry.margin, styles.heading, styles.heading_color, styles.heading_line_height,
        )

        text_x = geometry.margin + styles.badge_text_offset
        text_width = geometry.content_width - styles.badge_text_offset - 1.0

        for annotation in annotations:
            lines = wrap_text(
                f"{annotation.line_ref}: {annotation.content}",
                text_width, self.measurer, styles.annotation,
            )
            self._ensure_room(cursor, max(styles.annotation_line_height, styles.badge_height))
            page = self._page(cursor.page)
            badge_y = cursor.y + (styles.annotation_line_height - styles.badge_height) / 2
            page.items.append(RectItem(
                geometry.margin, badge_y, styles.badge_width, styles.badge_height,
                annotation.type.badge_rgb, radius=1.0,
            ))
            page.items.append(TextItem(
                geometry.margin + 1.0, cursor.y, annotation.type.prefix, styles.badge,
                styles.badge_text_color, styles.annotation_line_height,
                width=self.measurer.width(annotation.type.prefix, styles.badge),
            ))
            self._place_lines(
                cursor, region, lines, text_x, styles.annotation,
                styles.annotation_text_color, styles.annotation_line_height,
            )
            cursor.y += 1.0

        cursor.y += styles.body_line_height

    # === Placement ===

    def _place_lines(
        self,
        cursor: _Cursor,
        region: str,
        lines: list[WrappedLine],
        x: float,
        style: TextStyle,
        color: RGB,
        line_height: float,
        highlight: Optional[RGB] = None
    ) -> None:
        """Place wrapped lines, starting a new page when a line does not fit."""
        for line in lines:
            self._ensure_room(cursor, line_height)
            page = self._page(cursor.page)
            for run in line.runs:
                page.items.append(TextItem(
                    x + run.x, cursor.y, run.text, style, color, line_height,
                    width=run.width,
                    background=highlight if run.highlighted else None,
                ))
            self._document.lines.append(PlacedLine(cursor.page + 1, region, cursor.y, line_height, line.text))
            cursor.y += line_height

    def _ensure_room(self, cursor: _Cursor, height: float) -> None:
        """Move the cursor to the next page if height does not fit."""
        at_top = cursor.y <= self.geometry.content_top
        if cursor.y + height > self.geometry.content_bottom and not at_top:
            cursor.page += 1
            cursor.y = self.geometry.content_top
            self._page(cursor.page)

    def _page(self, index: int) -> Page:
        pages = self._document.pages
        while len(pages) <= index:
            pages.append(Page(len(pages) + 1))
        return pages[index]


def layout_comparison(
    comparison: Comparison,
    diff: Optional[WordDiffResult] = None,
    measurer: Optional[TextMeasurer] = None,
    geometry: Optional[PageGeometry] = None,
    styles: Optional[LayoutStyles] = None
) -> DocumentLayout:
    """Convenience wrapper around LayoutEngine.layout()."""
    engine = LayoutEngine(measurer or MonospaceMeasurer(), geometry, styles)
    return engine.layout(comparison, diff)
