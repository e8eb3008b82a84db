"""
Text panels for the side-by-side comparison view.

Provides:
- PanelTextEdit: one panel's output with diff highlighting,
  annotated-line backgrounds, annotation tooltips and line numbers
- SideBySidePanels: both panels in a splitter with ratio-based
  scroll synchronization while diff mode is on
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import Optional

from PyQt6.QtCore import Qt, QEvent, QRect, QSize, pyqtSignal
from PyQt6.QtGui import (
    QColor, QFont, QHelpEvent, QMouseEvent, QPainter, QPaintEvent,
    QResizeEvent, QTextCharFormat, QTextCursor,
)
from PyQt6.QtWidgets import (
    QFrame, QHBoxLayout, QLabel, QPlainTextEdit, QSplitter, QToolTip,
    QVBoxLayout, QWidget,
)

from llmbench.core.annotations.render_model import PanelRenderModel, group_by_display_line, split_links
from llmbench.core.annotations.scroll_sync import ScrollMetrics, ScrollSynchronizer
from llmbench.core.annotations.store import AnnotationStore
from llmbench.core.diff.word_diff import WordDiffResult
from llmbench.core.export.text_export import provenance_summary
from llmbench.core.models import Annotation, DiffSegment, PanelId, PanelOutput, SegmentType
from llmbench.services.settings import ColorSettings, DisplaySettings


@dataclass
class PanelColors:
    """Color scheme for panel highlighting."""
    removed_bg: QColor = field(default_factory=lambda: QColor(254, 202, 202))  # red-200
    added_bg: QColor = field(default_factory=lambda: QColor(187, 247, 208))    # green-200
    text_fg: QColor = field(default_factory=lambda: QColor(30, 30, 30))
    error_fg: QColor = field(default_factory=lambda: QColor(200, 0, 0))
    annotated_line: QColor = field(default_factory=lambda: QColor(37, 99, 235, 0x0A))
    line_number_bg: QColor = field(default_factory=lambda: QColor(245, 245, 245))
    line_number_fg: QColor = field(default_factory=lambda: QColor(128, 128, 128))

    @classmethod
    def dark_theme(cls) -> 'PanelColors':
        """Get dark theme colors."""
        return cls(
            removed_bg=QColor(127, 29, 29),
            added_bg=QColor(20, 83, 45),
            text_fg=QColor(220, 220, 220),
            error_fg=QColor(248, 113, 113),
            annotated_line=QColor(96, 165, 250, 0x12),
            line_number_bg=QColor(50, 50, 50),
            line_number_fg=QColor(150, 150, 150),
        )


class LineNumberArea(QWidget):
    """
    Gutter showing line numbers and a marker on annotated lines.

    Clicking a number emits the 1-based line; shift-click emits the
    range from the previous click.
    """

    line_clicked = pyqtSignal(int, int)  # (start_line, end_line)

    def __init__(self, editor: 'PanelTextEdit'):
        super().__init__(editor)
        self.editor = editor
        self._width = 40
        self._last_clicked: Optional[int] = None

    def sizeHint(self) -> QSize:
        return QSize(self._width, 0)

    def update_width(self) -> None:
        """Calculate and update width based on line count."""
        digits = len(str(max(1, self.editor.blockCount())))
        self._width = 16 + self.fontMetrics().horizontalAdvance('9') * max(digits, 2)
        self.setFixedWidth(self._width)

    def paintEvent(self, event: QPaintEvent) -> None:
        """Paint line numbers."""
        colors = self.editor.colors
        painter = QPainter(self)
        painter.fillRect(event.rect(), colors.line_number_bg)

        block = self.editor.firstVisibleBlock()
        block_number = block.blockNumber()
        top = int(self.editor.blockBoundingGeometry(block).translated(
            self.editor.contentOffset()).top())
        bottom = top + int(self.editor.blockBoundingRect(block).height())
        marked = self.editor.annotated_line_numbers if self.editor.annotations_visible else set()

        while block.isValid() and top <= event.rect().bottom():
            if block.isVisible() and bottom >= event.rect().top():
                line = block_number + 1
                if line in marked:
                    painter.fillRect(0, top, 3, bottom - top, self.editor.annotation_marker_color(line))
                painter.setPen(colors.line_number_fg)
                painter.drawText(
                    0, top,
                    self._width - 5, self.fontMetrics().height(),
                    Qt.AlignmentFlag.AlignRight,
                    str(line)
                )

            block = block.next()
            top = bottom
            bottom = top + int(self.editor.blockBoundingRect(block).height())
            block_number += 1

        painter.end()

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """Handle click to select a line or, with shift, a range."""
        if event.button() != Qt.MouseButton.LeftButton:
            return
        line = self.editor.line_at(int(event.position().y()))
        if line is None:
            return

        shift = bool(event.modifiers() & Qt.KeyboardModifier.ShiftModifier)
        if shift and self._last_clicked is not None:
            self.line_clicked.emit(min(self._last_clicked, line), max(self._last_clicked, line))
        else:
            self.line_clicked.emit(line, line)
        self._last_clicked = line


class PanelTextEdit(QPlainTextEdit):
    """
    Read-only display of one panel's output.

    Shows plain text, or diff segments with this panel's unique words
    highlighted. Lines carrying annotations get a tinted background and
    a tooltip listing their annotations. Satisfies the ScrollTarget
    protocol so two panels can be bound by a ScrollSynchronizer.
    """

    # (start_line, end_line), 1-based
    line_clicked = pyqtSignal(int, int)

    def __init__(
        self,
        panel: PanelId,
        parent: Optional[QWidget] = None,
        colors: Optional[PanelColors] = None,
        dark: bool = False
    ):
        super().__init__(parent)
        self.panel = panel
        self.colors = colors or (PanelColors.dark_theme() if dark else PanelColors())
        self.dark = dark
        self.highlight_annotated_lines = True
        self.annotations_visible = True
        self.marker_opacity = 1.0

        self._output: Optional[PanelOutput] = None
        self._segments: Optional[list[DiffSegment]] = None
        self._store: Optional[AnnotationStore] = None
        self._annotations_by_line: dict[int, list[Annotation]] = {}
        self._display_lines: dict[str, int] = {}
        self._annotated: set[int] = set()

        self._setup_editor()
        self.line_number_area = LineNumberArea(self)
        self.line_number_area.line_clicked.connect(self.line_clicked)
        self.blockCountChanged.connect(self._update_line_number_width)
        self.blockCountChanged.connect(lambda _count: self._refresh_annotations())
        self.updateRequest.connect(self._update_line_number_area)
        self._update_line_number_width()

    def _setup_editor(self) -> None:
        """Configure editor settings."""
        self.setReadOnly(True)
        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.WidgetWidth)
        self.setTextInteractionFlags(
            Qt.TextInteractionFlag.TextSelectableByMouse |
            Qt.TextInteractionFlag.TextSelectableByKeyboard
        )
        self.setFont(QFont("Georgia", 11))

    # === Content ===

    @property
    def unique_type(self) -> SegmentType:
        """Segment type highlighted in this panel."""
        return SegmentType.REMOVED if self.panel is PanelId.A else SegmentType.ADDED

    @property
    def annotated_line_numbers(self) -> set[int]:
        return self._annotated

    def set_output(self, output: Optional[PanelOutput]) -> None:
        """Show a panel output as plain text (or its error)."""
        self._output = output
        self._segments = None
        self._render()

    def set_segments(self, segments: Optional[list[DiffSegment]]) -> None:
        """
        Show diff segments, or revert to plain text with None.

        Segments are ignored for an error output.
        """
        if self._output is not None and self._output.is_error:
            segments = None
        self._segments = segments
        self._render()

    def apply_settings(self, display: DisplaySettings, colors: Optional[ColorSettings] = None) -> None:
        """Apply the prose font, annotation visibility and highlight colors."""
        self.setFont(QFont(display.prose_font_family, display.prose_font_size))
        if colors is not None:
            self.colors.removed_bg = QColor(colors.removed(self.dark))
            self.colors.added_bg = QColor(colors.added(self.dark))
            self.colors.annotated_line = QColor(colors.annotated_line_color)
        self.colors.annotated_line.setAlpha(display.line_highlight.alpha)
        self.highlight_annotated_lines = display.highlight_annotated_lines
        self.annotations_visible = display.annotations_visible
        self.marker_opacity = display.brightness.opacity

        self._update_line_number_width()
        self._render()
        self.line_number_area.update()
        self.viewport().update()

    def bind_store(self, store: Optional[AnnotationStore]) -> None:
        """Follow an annotation store, refreshing on every change."""
        if self._store is not None:
            self._store.remove_observer(self._on_annotations_changed)
        self._store = store
        if store is not None:
            store.add_observer(self._on_annotations_changed)
            self._on_annotations_changed(store.panel_id, store.annotations)
        else:
            self._on_annotations_changed(self.panel, [])

    def _render(self) -> None:
        output = self._output
        self.clear()
        self.setCurrentCharFormat(QTextCharFormat())

        if output is None:
            return

        if output.is_error:
            fmt = QTextCharFormat()
            fmt.setForeground(self.colors.error_fg)
            cursor = self.textCursor()
            cursor.insertText(f"Error: {output.error}", fmt)
            return

        if self._segments is None:
            self.setPlainText(output.text)
            return

        cursor = self.textCursor()
        neutral = QTextCharFormat()
        highlight = QTextCharFormat()
        highlight.setBackground(self.colors.removed_bg if self.panel is PanelId.A else self.colors.added_bg)
        for segment in self._segments:
            cursor.insertText(segment.text, highlight if segment.type is self.unique_type else neutral)
        self.moveCursor(QTextCursor.MoveOperation.Start)

    def _on_annotations_changed(self, panel: PanelId, annotations: list[Annotation]) -> None:
        self._refresh_annotations()

    def _refresh_annotations(self) -> None:
        """
        Place the bound store's annotations on the displayed lines.

        Anchors past the end of the text are pinned to the last line so
        they still get a marker and can be opened for editing.
        """
        self._annotations_by_line = {}
        self._display_lines = {}
        self._annotated = set()

        if self._store is not None:
            line_count = max(self.blockCount(), 1)
            for placement in PanelRenderModel(self._store).build(line_count):
                annotation = placement.annotation
                if annotation is None:
                    continue
                last = min(placement.display_line, line_count)
                first = min(annotation.line_number, last)
                self._display_lines[annotation.id] = last
                for line in range(first, last + 1):
                    self._annotations_by_line.setdefault(line, []).append(annotation)
                    self._annotated.add(line)

        self.line_number_area.update()
        self.viewport().update()

    def annotations_at(self, line: int) -> list[Annotation]:
        """Annotations whose range covers a 1-based line."""
        return list(self._annotations_by_line.get(line, []))

    def anchored_at(self, line: int) -> list[Annotation]:
        """Annotations shown at a 1-based line, orphans included."""
        return [a for a in self.annotations_at(line) if self._display_lines.get(a.id) == line]

    def annotation_marker_color(self, line: int) -> QColor:
        annotations = self.annotations_at(line)
        if not annotations:
            return self.colors.line_number_fg
        color = QColor(annotations[0].type.color(self.dark))
        color.setAlphaF(self.marker_opacity)
        return color

    def tooltip_for_line(self, line: int) -> str:
        """Tooltip text listing a line's annotations, grouped by anchor."""
        if not self.annotations_visible:
            return ""
        parts = []
        for group in group_by_display_line(self.annotations_at(line)).values():
            for annotation in group:
                parts.append(f"[{annotation.type.prefix}] {annotation.line_ref}: {annotation.content}")
        return "\n".join(parts)

    def tooltip_html_for_line(self, line: int) -> str:
        """Rich-text variant of tooltip_for_line with URLs linked."""
        if not self.annotations_visible:
            return ""
        rows = []
        for group in group_by_display_line(self.annotations_at(line)).values():
            for annotation in group:
                body = "".join(
                    f'<a href="{html.escape(part.href)}">{html.escape(part.text)}</a>' if part.is_link
                    else html.escape(part.text)
                    for part in split_links(annotation.content)
                )
                rows.append(f"<b>[{annotation.type.prefix}]</b> {annotation.line_ref}: {body}")
        return "<br>".join(rows)

    # === Geometry ===

    def line_at(self, y: int) -> Optional[int]:
        """1-based line under a viewport y coordinate."""
        block = self.firstVisibleBlock()
        top = int(self.blockBoundingGeometry(block).translated(self.contentOffset()).top())
        while block.isValid():
            bottom = top + int(self.blockBoundingRect(block).height())
            if top <= y < bottom:
                return block.blockNumber() + 1
            block = block.next()
            top = bottom
        return None

    def scroll_metrics(self) -> ScrollMetrics:
        bar = self.verticalScrollBar()
        return ScrollMetrics(
            scroll_top=bar.value() - bar.minimum(),
            scroll_height=bar.maximum() - bar.minimum() + bar.pageStep(),
            client_height=bar.pageStep(),
        )

    def set_scroll_top(self, value: float) -> None:
        bar = self.verticalScrollBar()
        bar.setValue(bar.minimum() + int(round(value)))

    # === Events ===

    def viewportEvent(self, event: QEvent) -> bool:
        if event.type() == QEvent.Type.ToolTip and isinstance(event, QHelpEvent):
            line = self.line_at(event.pos().y())
            text = self.tooltip_html_for_line(line) if line is not None else ""
            if text:
                QToolTip.showText(event.globalPos(), text, self)
            else:
                QToolTip.hideText()
                event.ignore()
            return True
        return super().viewportEvent(event)

    def paintEvent(self, event: QPaintEvent) -> None:
        """Custom paint for annotated line backgrounds."""
        if self.highlight_annotated_lines and self.annotations_visible and self._annotated:
            painter = QPainter(self.viewport())
            block = self.firstVisibleBlock()
            top = int(self.blockBoundingGeometry(block).translated(self.contentOffset()).top())

            while block.isValid() and top <= event.rect().bottom():
                height = int(self.blockBoundingRect(block).height())
                if block.blockNumber() + 1 in self._annotated:
                    painter.fillRect(0, top, self.viewport().width(), height, self.colors.annotated_line)
                block = block.next()
                top += height

            painter.end()

        super().paintEvent(event)

    def resizeEvent(self, event: QResizeEvent) -> None:
        """Handle resize."""
        super().resizeEvent(event)
        cr = self.contentsRect()
        self.line_number_area.setGeometry(
            QRect(cr.left(), cr.top(), self.line_number_area.width(), cr.height())
        )

    def _update_line_number_width(self) -> None:
        self.line_number_area.update_width()
        self.setViewportMargins(self.line_number_area.width(), 0, 0, 0)

    def _update_line_number_area(self, rect: QRect, dy: int) -> None:
        if dy:
            self.line_number_area.scroll(0, dy)
        else:
            self.line_number_area.update(0, rect.y(), self.line_number_area.width(), rect.height())


class SideBySidePanels(QWidget):
    """
    Panel A and panel B side by side.

    Scrolling is synchronized by ratio while diff mode is enabled.
    """

    # (panel, start_line, end_line)
    line_selected = pyqtSignal(object, int, int)

    def __init__(self, parent: Optional[QWidget] = None, dark: bool = False):
        super().__init__(parent)

        self.editors: dict[PanelId, PanelTextEdit] = {}
        self.headers: dict[PanelId, QLabel] = {}
        self._outputs: dict[PanelId, Optional[PanelOutput]] = {PanelId.A: None, PanelId.B: None}
        self._dark = dark
        self._setup_ui()

        self.sync = ScrollSynchronizer(self.editors[PanelId.A], self.editors[PanelId.B])
        self._connect_signals()

    def _setup_ui(self) -> None:
        """Setup the widget layout."""
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self.splitter = QSplitter(Qt.Orientation.Horizontal)

        for panel in PanelId:
            container = QFrame()
            container.setFrameShape(QFrame.Shape.StyledPanel)
            container_layout = QVBoxLayout(container)
            container_layout.setContentsMargins(0, 0, 0, 0)

            header = QLabel(f"Panel {panel.value}")
            header.setContentsMargins(6, 4, 6, 4)
            container_layout.addWidget(header)
            self.headers[panel] = header

            editor = PanelTextEdit(panel, dark=self._dark)
            container_layout.addWidget(editor)
            self.editors[panel] = editor

            self.splitter.addWidget(container)

        # Equal sizes
        self.splitter.setSizes([1, 1])
        layout.addWidget(self.splitter)

    def _connect_signals(self) -> None:
        """Connect editor signals for synchronization."""
        for panel, editor in self.editors.items():
            editor.verticalScrollBar().valueChanged.connect(
                lambda _value, source=editor: self.sync.on_scrolled(source)
            )
            editor.line_clicked.connect(
                lambda start, end, p=panel: self.line_selected.emit(p, start, end)
            )

    @property
    def diff_enabled(self) -> bool:
        return self.sync.enabled

    def set_outputs(self, output_a: Optional[PanelOutput], output_b: Optional[PanelOutput]) -> None:
        """Show both outputs as plain text and leave diff mode."""
        self._outputs = {PanelId.A: output_a, PanelId.B: output_b}
        for panel, output in self._outputs.items():
            self.editors[panel].set_output(output)
            summary = provenance_summary(output)
            self.headers[panel].setText(f"Panel {panel.value}" + (f" - {summary}" if summary else ""))
        self.sync.enabled = False

    def set_diff(self, diff: Optional[WordDiffResult]) -> None:
        """
        Enter diff mode with the given result, or leave it with None.

        Scroll sync follows diff mode.
        """
        for panel, editor in self.editors.items():
            editor.set_segments(diff.segments(panel.value) if diff is not None else None)
        self.sync.enabled = diff is not None

    def bind_stores(self, store_a: Optional[AnnotationStore], store_b: Optional[AnnotationStore]) -> None:
        self.editors[PanelId.A].bind_store(store_a)
        self.editors[PanelId.B].bind_store(store_b)
