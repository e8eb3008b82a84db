"""
PDF rendering of a paginated comparison layout.

Uses QPdfWriter and QPainter. Layout coordinates are millimetres and
are converted to device units with the writer's resolution; fonts are
sized in points so text width matches the measurement taken during
layout.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QLineF, QMarginsF, QRectF, Qt
from PyQt6.QtGui import (
    QBrush, QColor, QFont, QFontMetricsF, QGuiApplication, QPageLayout,
    QPageSize, QPainter, QPdfWriter, QPen,
)

from llmbench import APP_NAME
from llmbench.core.diff.word_diff import WordDiffResult, compute_word_diff
from llmbench.core.export.layout import (
    DocumentLayout,
    LayoutEngine,
    LayoutStyles,
    PageGeometry,
    PageSize,
    RectItem,
    RuleItem,
    TextItem,
    TextStyle,
)
from llmbench.core.models import Comparison


PDF_RESOLUTION = 300
MM_PER_INCH = 25.4

_TEXT_FLAGS = (
    Qt.AlignmentFlag.AlignLeft.value
    | Qt.AlignmentFlag.AlignVCenter.value
    | Qt.TextFlag.TextDontClip.value
)


def ensure_gui_application() -> QGuiApplication:
    """
    Return the running Qt application, creating a GUI one if needed.

    Font metrics need an application instance. Without a display the
    offscreen platform is selected.
    """
    app = QGuiApplication.instance()
    if app is not None:
        return app

    if sys.platform.startswith('linux') and not os.environ.get('DISPLAY') \
            and not os.environ.get('WAYLAND_DISPLAY'):
        os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

    logging.debug("PdfWriter - Creating QGuiApplication for font metrics")
    return QGuiApplication(sys.argv[:1] or [APP_NAME])


def _make_font(style: TextStyle) -> QFont:
    font = QFont(style.family)
    font.setPointSizeF(style.size)
    font.setBold(style.bold)
    font.setItalic(style.italic)
    return font


class QtTextMeasurer:
    """
    Measures text with Qt font metrics against a paint device.

    Widths are returned in millimetres.
    """

    def __init__(self, device: QPdfWriter):
        self._device = device
        self._dots_per_mm = device.resolution() / MM_PER_INCH
        self._metrics: dict[TextStyle, QFontMetricsF] = {}

    def width(self, text: str, style: TextStyle) -> float:
        metrics = self._metrics.get(style)
        if metrics is None:
            metrics = QFontMetricsF(_make_font(style), self._device)
            self._metrics[style] = metrics
        return metrics.horizontalAdvance(text) / self._dots_per_mm


class PdfRenderer:
    """
    Draws a DocumentLayout onto a QPdfWriter.

    Usage:
        writer = PdfRenderer.create_writer(path, geometry)
        renderer = PdfRenderer(writer)
        renderer.render(layout)
    """

    def __init__(self, writer: QPdfWriter):
        self.writer = writer
        self._dots_per_mm = writer.resolution() / MM_PER_INCH
        self._fonts: dict[TextStyle, QFont] = {}

    @staticmethod
    def create_writer(path: Path, geometry: PageGeometry) -> QPdfWriter:
        writer = QPdfWriter(str(path))
        writer.setResolution(PDF_RESOLUTION)
        page_id = QPageSize.PageSizeId.A4 if geometry.page_size is PageSize.A4 \
            else QPageSize.PageSizeId.Letter
        writer.setPageSize(QPageSize(page_id))
        writer.setPageOrientation(QPageLayout.Orientation.Portrait)
        writer.setPageMargins(QMarginsF(0, 0, 0, 0), QPageLayout.Unit.Millimeter)
        writer.setCreator(APP_NAME)
        return writer

    def render(self, layout: DocumentLayout) -> None:
        painter = QPainter()
        if not painter.begin(self.writer):
            raise IOError("Could not open PDF device for painting")

        try:
            for index, page in enumerate(layout.pages):
                if index > 0:
                    self.writer.newPage()
                for item in page.items:
                    if isinstance(item, TextItem):
                        self._draw_text(painter, item)
                    elif isinstance(item, RectItem):
                        self._draw_rect(painter, item)
                    elif isinstance(item, RuleItem):
                        self._draw_rule(painter, item)
        finally:
            painter.end()

    # === Drawing ===

    def _mm(self, value: float) -> float:
        return value * self._dots_per_mm

    def _font(self, style: TextStyle) -> QFont:
        font = self._fonts.get(style)
        if font is None:
            font = _make_font(style)
            self._fonts[style] = font
        return font

    def _draw_text(self, painter: QPainter, item: TextItem) -> None:
        rect = QRectF(
            self._mm(item.x), self._mm(item.y),
            self._mm(max(item.width, 0.1)), self._mm(item.line_height),
        )
        if item.background is not None:
            painter.fillRect(rect, QColor(*item.background))

        painter.setFont(self._font(item.style))
        painter.setPen(QColor(*item.color))
        painter.drawText(
            rect.adjusted(0, 0, self._mm(1.0), 0),
            _TEXT_FLAGS,
            item.text,
        )

    def _draw_rect(self, painter: QPainter, item: RectItem) -> None:
        rect = QRectF(self._mm(item.x), self._mm(item.y), self._mm(item.width), self._mm(item.height))
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(QColor(*item.fill)))
        if item.radius:
            painter.drawRoundedRect(rect, self._mm(item.radius), self._mm(item.radius))
        else:
            painter.drawRect(rect)
        painter.setBrush(Qt.BrushStyle.NoBrush)

    def _draw_rule(self, painter: QPainter, item: RuleItem) -> None:
        pen = QPen(QColor(*item.color))
        pen.setWidthF(self._mm(0.2))
        painter.setPen(pen)
        y = self._mm(item.y)
        painter.drawLine(QLineF(self._mm(item.x1), y, self._mm(item.x2), y))


def export_as_pdf(
    comparison: Comparison,
    path: Path | str,
    diff: Optional[WordDiffResult] = None,
    geometry: Optional[PageGeometry] = None,
    styles: Optional[LayoutStyles] = None,
    with_diff: bool = True
) -> Path:
    """
    Render a comparison as a paginated two-column PDF.

    When no diff is given and both panels hold text, one is computed
    unless with_diff is False.

    Args:
        comparison: Comparison to export
        path: Destination file
        diff: Optional precomputed word diff
        geometry: Page geometry (A4 with 15 mm margins by default)
        styles: Fonts and colors
        with_diff: Highlight unique words in each column

    Returns:
        Path of the written file
    """
    path = Path(path)
    geometry = geometry or PageGeometry()

    if diff is None and with_diff and comparison.has_both_texts:
        diff = compute_word_diff(comparison.output_a.text, comparison.output_b.text)
    if not with_diff:
        diff = None

    ensure_gui_application()
    path.parent.mkdir(parents=True, exist_ok=True)

    writer = PdfRenderer.create_writer(path, geometry)
    engine = LayoutEngine(QtTextMeasurer(writer), geometry, styles)
    layout = engine.layout(comparison, diff)

    # Ending the painter finalizes the file
    PdfRenderer(writer).render(layout)

    logging.info(f"PdfWriter - Exported '{comparison.name}' to {path} ({layout.page_count} pages)")
    return path
