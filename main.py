#!/usr/bin/env python3
"""
LLMbench - side-by-side comparison and annotation of generated text.

Entry point for the command line tools and the desktop viewer.

Usage:
    llmbench view [comparison.json]
    llmbench diff left.txt right.txt
    llmbench export comparison.json --format pdf -o out.pdf
"""

from __future__ import annotations

import argparse
import faulthandler
import json
import logging
import os
import signal
import sys
import traceback
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import List, Optional, TextIO

from llmbench import APP_NAME, __version__ as APP_VERSION
from llmbench.core.diff import compute_word_diff, segments_to_lines
from llmbench.core.export.structured import export_as_json, safe_filename
from llmbench.core.export.text_export import export_as_markdown, export_as_text
from llmbench.core.models import Comparison, DiffSegment, SegmentType
from llmbench.services.file_io import FileIOService


# =============================================================================
# Constants
# =============================================================================

APP_ORGANIZATION = "LLMbench"
EXPORT_FORMATS = ('json', 'txt', 'md', 'pdf')


class Command(Enum):
    """Top-level command."""
    VIEW = auto()
    DIFF = auto()
    EXPORT = auto()


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class CommandLineArgs:
    """Parsed command line arguments."""
    command: Command = Command.VIEW
    comparison_path: Optional[str] = None
    left_path: Optional[str] = None
    right_path: Optional[str] = None
    output_path: Optional[str] = None
    export_format: str = 'json'
    page_size: str = 'A4'
    no_highlight: bool = False
    no_color: bool = False
    log_level: str = "WARNING"
    log_file: Optional[str] = None


# =============================================================================
# Logging Setup
# =============================================================================

class LogFormatter(logging.Formatter):
    """Custom log formatter with colors for console."""

    COLORS = {
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        if self.use_colors:
            color = self.COLORS.get(record.levelno, '')
            return f"{color}{formatted}{self.RESET}"

        return formatted


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure application logging.

    Console output goes to stderr so that command output on stdout
    stays clean for piping.

    Args:
        level: Log level string
        log_file: Optional file path for logging

    Returns:
        Root logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(LogFormatter(use_colors=True))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(LogFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('PyQt6').setLevel(logging.WARNING)

    return root_logger


# =============================================================================
# Exception Handling
# =============================================================================

class ExceptionHandler:
    """
    Global exception handler for unhandled exceptions.

    Logs the exception and, while the viewer is running, shows an
    error dialog.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._app = None

    def set_application(self, app) -> None:
        """Set the application instance for error dialogs."""
        self._app = app

    def handle_exception(
        self,
        exc_type: type,
        exc_value: BaseException,
        exc_tb
    ) -> None:
        """Handle an unhandled exception."""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return

        self.logger.critical(
            "Unhandled exception",
            exc_info=(exc_type, exc_value, exc_tb)
        )

        tb_text = ''.join(traceback.format_exception(exc_type, exc_value, exc_tb))

        if self._app is not None:
            self._show_error_dialog(exc_type, exc_value, tb_text)

    def _show_error_dialog(
        self,
        exc_type: type,
        exc_value: BaseException,
        traceback_text: str
    ) -> None:
        """Show error dialog to user."""
        from PyQt6.QtWidgets import QApplication, QMessageBox

        if QApplication.instance() is None:
            return

        dialog = QMessageBox()
        dialog.setIcon(QMessageBox.Icon.Critical)
        dialog.setWindowTitle("Application Error")
        dialog.setText(f"An unexpected error occurred:\n\n{exc_type.__name__}: {exc_value}")
        dialog.setDetailedText(traceback_text)
        dialog.setStandardButtons(
            QMessageBox.StandardButton.Ok |
            QMessageBox.StandardButton.Close
        )
        dialog.setDefaultButton(QMessageBox.StandardButton.Ok)

        copy_btn = dialog.addButton("Copy to Clipboard", QMessageBox.ButtonRole.ActionRole)

        dialog.exec()

        clicked = dialog.clickedButton()
        if clicked == copy_btn:
            QApplication.clipboard().setText(traceback_text)
        elif clicked == dialog.button(QMessageBox.StandardButton.Close):
            QApplication.quit()


# =============================================================================
# Command Line Parsing
# =============================================================================

def parse_arguments(args: Optional[List[str]] = None) -> CommandLineArgs:
    """
    Parse command line arguments.

    Args:
        args: Arguments to parse (defaults to sys.argv)

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog=APP_NAME.lower(),
        description="Compare and annotate two generated texts side by side",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s view                               Open an empty comparison
  %(prog)s view saved.json                    Open a saved comparison
  %(prog)s diff a.txt b.txt                   Print a word diff
  %(prog)s export saved.json -f pdf -o x.pdf  Export to PDF
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='WARNING',
        help='Log level'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument(
        '--log-file',
        help='Also write log records to this file'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'{APP_NAME} {APP_VERSION}'
    )

    subparsers = parser.add_subparsers(dest='command')

    view_parser = subparsers.add_parser('view', help='Open the side-by-side viewer')
    view_parser.add_argument('comparison', nargs='?', help='Saved comparison JSON file')

    diff_parser = subparsers.add_parser('diff', help='Print a word-level diff of two text files')
    diff_parser.add_argument('left', help='Text for panel A')
    diff_parser.add_argument('right', help='Text for panel B')
    diff_parser.add_argument('--no-color', action='store_true',
                             help='Mark changes with [-removed-] and {+added+} instead of colors')

    export_parser = subparsers.add_parser('export', help='Export a saved comparison')
    export_parser.add_argument('comparison', help='Saved comparison JSON file')
    export_parser.add_argument('-f', '--format', choices=EXPORT_FORMATS, default='json',
                               help='Export format')
    export_parser.add_argument('-o', '--output',
                               help='Output file (stdout for text formats when omitted)')
    export_parser.add_argument('--page-size', choices=['A4', 'Letter'], default='A4',
                               help='PDF page size')
    export_parser.add_argument('--no-highlight', action='store_true',
                               help='Do not highlight word differences in the PDF')

    parsed = parser.parse_args(args)

    result = CommandLineArgs()
    result.log_file = parsed.log_file
    result.log_level = 'DEBUG' if parsed.verbose else parsed.log_level

    command = parsed.command or 'view'
    result.command = Command[command.upper()]

    if result.command is Command.VIEW:
        result.comparison_path = getattr(parsed, 'comparison', None)
    elif result.command is Command.DIFF:
        result.left_path = parsed.left
        result.right_path = parsed.right
        result.no_color = parsed.no_color
    else:
        result.comparison_path = parsed.comparison
        result.export_format = parsed.format
        result.output_path = parsed.output
        result.page_size = parsed.page_size
        result.no_highlight = parsed.no_highlight
        if result.export_format == 'pdf' and not result.output_path:
            parser.error("PDF export requires --output")

    return result


# =============================================================================
# Commands
# =============================================================================

def load_comparison_file(path: Path | str) -> Comparison:
    """
    Read a saved comparison.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not JSON
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return Comparison.from_dict(data)


SEGMENT_COLORS = {
    SegmentType.ADDED: '\033[32m',    # Green
    SegmentType.REMOVED: '\033[31m',  # Red
}
SEGMENT_MARKERS = {
    SegmentType.ADDED: ('{+', '+}'),
    SegmentType.REMOVED: ('[-', '-]'),
}


def format_segments(segments: List[DiffSegment], use_colors: bool = True) -> str:
    """Render diff segments for a terminal."""
    parts = []
    for segment in segments:
        if segment.is_common:
            parts.append(segment.text)
        elif use_colors:
            parts.append(f"{SEGMENT_COLORS[segment.type]}{segment.text}{LogFormatter.RESET}")
        else:
            opening, closing = SEGMENT_MARKERS[segment.type]
            parts.append(f"{opening}{segment.text}{closing}")
    return ''.join(parts)


def run_diff(args: CommandLineArgs, out: TextIO = sys.stdout) -> int:
    """Print panel A with removals and panel B with additions."""
    file_io = FileIOService()
    texts = []
    for path in (args.left_path, args.right_path):
        result = file_io.read_text(path)
        if not result.success:
            logging.error(f"Diff - {result.error}")
            return 1
        texts.append(result.text)

    diff = compute_word_diff(texts[0], texts[1])
    use_colors = not args.no_color and out.isatty()

    if diff.is_identical:
        out.write("Texts are identical.\n")
        return 0

    headers = {
        "A": f"--- A: {args.left_path} ({diff.unique_count_a} removed)",
        "B": f"+++ B: {args.right_path} ({diff.unique_count_b} added)",
    }
    for panel, header in headers.items():
        out.write(header + "\n")
        # 1-based, as in the panel gutter
        for number, line in enumerate(segments_to_lines(diff.segments(panel)), 1):
            out.write(f"{number:>4} | {format_segments(line, use_colors)}\n")
    return 0


def run_export(args: CommandLineArgs, out: TextIO = sys.stdout) -> int:
    """Export a saved comparison to the requested format."""
    try:
        comparison = load_comparison_file(args.comparison_path)
    except (OSError, ValueError) as e:
        logging.error(f"Export - Could not read {args.comparison_path}: {e}")
        return 1

    if args.export_format == 'pdf':
        from llmbench.core.export.layout import PageGeometry, PageSize
        from llmbench.core.export.pdf_writer import export_as_pdf

        geometry = PageGeometry(page_size=PageSize.from_string(args.page_size))
        try:
            path = export_as_pdf(comparison, args.output_path, geometry=geometry,
                                 with_diff=not args.no_highlight)
        except OSError as e:
            logging.error(f"Export - PDF export failed: {e}")
            return 1
        out.write(f"{path}\n")
        return 0

    renderers = {'json': export_as_json, 'txt': export_as_text, 'md': export_as_markdown}
    content = renderers[args.export_format](comparison)

    if not args.output_path:
        out.write(content)
        if not content.endswith('\n'):
            out.write('\n')
        return 0

    output_path = Path(args.output_path)
    if output_path.is_dir():
        output_path = output_path / safe_filename(comparison.name, args.export_format)

    result = FileIOService().write_text(output_path, content)
    if not result.success:
        logging.error(f"Export - {result.error}")
        return 1

    out.write(f"{output_path}\n")
    return 0


# =============================================================================
# Viewer Setup
# =============================================================================

def setup_application():
    """
    Create and configure the QApplication.

    Returns:
        Configured QApplication instance
    """
    from PyQt6.QtWidgets import QApplication

    app = QApplication(sys.argv)

    app.setApplicationName(APP_NAME)
    app.setApplicationVersion(APP_VERSION)
    app.setOrganizationName(APP_ORGANIZATION)
    app.setQuitOnLastWindowClosed(True)

    return app


def setup_theme(app, dark: bool) -> None:
    """
    Apply the Fusion style, with a dark palette when requested.

    Args:
        app: QApplication instance
        dark: Use the dark palette
    """
    from PyQt6.QtCore import Qt
    from PyQt6.QtGui import QColor, QPalette
    from PyQt6.QtWidgets import QStyleFactory

    logging.info(f"Setting up theme: {'dark' if dark else 'light'}")
    app.setStyle(QStyleFactory.create("Fusion"))
    if not dark:
        return

    dark_palette = QPalette()

    dark_color = QColor(45, 45, 45)
    darker_color = QColor(35, 35, 35)
    text_color = QColor(212, 212, 212)
    highlight_color = QColor(42, 130, 218)

    dark_palette.setColor(QPalette.ColorRole.Window, dark_color)
    dark_palette.setColor(QPalette.ColorRole.WindowText, text_color)
    dark_palette.setColor(QPalette.ColorRole.Base, darker_color)
    dark_palette.setColor(QPalette.ColorRole.AlternateBase, dark_color)
    dark_palette.setColor(QPalette.ColorRole.ToolTipBase, dark_color)
    dark_palette.setColor(QPalette.ColorRole.ToolTipText, text_color)
    dark_palette.setColor(QPalette.ColorRole.Text, text_color)
    dark_palette.setColor(QPalette.ColorRole.Button, dark_color)
    dark_palette.setColor(QPalette.ColorRole.ButtonText, text_color)
    dark_palette.setColor(QPalette.ColorRole.BrightText, Qt.GlobalColor.red)
    dark_palette.setColor(QPalette.ColorRole.Link, highlight_color)
    dark_palette.setColor(QPalette.ColorRole.Highlight, highlight_color)
    dark_palette.setColor(QPalette.ColorRole.HighlightedText, Qt.GlobalColor.black)

    app.setPalette(dark_palette)


def setup_signal_handlers():
    """
    Set up Unix signal handlers.

    Returns:
        The timer that lets Python handle signals during the Qt event
        loop; the caller keeps it alive.
    """
    if sys.platform == 'win32':
        return None

    from PyQt6.QtCore import QTimer

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    timer = QTimer()
    timer.timeout.connect(lambda: None)
    timer.start(500)
    return timer


def _signal_handler(signum, frame) -> None:
    """Handle Unix signals."""
    from PyQt6.QtWidgets import QApplication

    logging.info(f"Received signal {signum}, shutting down...")
    QApplication.quit()


def run_viewer(args: CommandLineArgs, exception_handler: ExceptionHandler) -> int:
    """Open the main window, optionally with a saved comparison."""
    comparison = None
    if args.comparison_path:
        try:
            comparison = load_comparison_file(args.comparison_path)
        except (OSError, ValueError) as e:
            logging.error(f"Viewer - Could not read {args.comparison_path}: {e}")
            return 1

    app = setup_application()
    exception_handler.set_application(app)

    from llmbench.services.settings import SettingsManager
    from llmbench.ui.main_window import MainWindow

    settings_manager = SettingsManager()
    setup_theme(app, settings_manager.settings.display.dark_mode)
    signal_timer = setup_signal_handlers()

    window = MainWindow(settings_manager=settings_manager)
    if comparison is not None:
        window.load_comparison(comparison)
        settings_manager.add_recent_comparison(str(Path(args.comparison_path).resolve()))
    window.show()

    logging.info("Viewer started")
    exit_code = app.exec()
    if signal_timer is not None:
        signal_timer.stop()
    return exit_code


# =============================================================================
# Main Function
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Application main entry point.

    Returns:
        Exit code (0 for success)
    """
    # Redirect stdout/stderr if None (common in frozen apps)
    if sys.stdout is None:
        sys.stdout = open(os.devnull, 'w')
    if sys.stderr is None:
        sys.stderr = open(os.devnull, 'w')

    faulthandler.enable()

    args = parse_arguments(argv)

    logger = setup_logging(args.log_level, Path(args.log_file) if args.log_file else None)
    logger.info(f"Starting {APP_NAME} v{APP_VERSION} ({args.command.name.lower()})")

    exception_handler = ExceptionHandler(logger)
    sys.excepthook = exception_handler.handle_exception

    if args.command is Command.DIFF:
        return run_diff(args)
    if args.command is Command.EXPORT:
        return run_export(args)
    return run_viewer(args, exception_handler)


if __name__ == '__main__':
    sys.exit(main())
