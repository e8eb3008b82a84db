"""
Main application window.

Hosts the prompt bar and the side-by-side panels, and wires the
session to generation, saving, loading, diff mode and export.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import pyqtSlot
from PyQt6.QtGui import QAction, QCloseEvent, QKeySequence
from PyQt6.QtWidgets import (
    QFileDialog, QHBoxLayout, QLabel, QLineEdit, QMainWindow, QMessageBox,
    QPushButton, QVBoxLayout, QWidget,
)

from llmbench import APP_NAME
from llmbench.core.export.structured import export_as_json, safe_filename
from llmbench.core.export.text_export import export_as_markdown, export_as_text
from llmbench.core.models import Comparison, PanelId
from llmbench.core.session import Session
from llmbench.services.file_io import FileIOService
from llmbench.services.generation import DispatchResult, GenerationBackend
from llmbench.services.settings import ApplicationSettings, SettingsManager
from llmbench.services.storage import ComparisonStore
from llmbench.ui.widgets.annotation_dialog import AnnotationDialog
from llmbench.ui.widgets.panel_text_edit import SideBySidePanels
from llmbench.workers.base_worker import WorkerThread
from llmbench.workers.generation_worker import GenerationWorker


class MainWindow(QMainWindow):
    """
    Comparison workspace.

    Usage:
        window = MainWindow()
        window.load_comparison(Comparison.from_dict(data))
        window.show()
    """

    def __init__(
        self,
        settings_manager: Optional[SettingsManager] = None,
        store: Optional[ComparisonStore] = None,
        backend: Optional[GenerationBackend] = None,
        parent: Optional[QWidget] = None
    ):
        super().__init__(parent)

        self._settings_manager = settings_manager or SettingsManager()
        self._settings = self._settings_manager.settings
        self._store = store or ComparisonStore()
        self._backend = backend
        self._file_io = FileIOService()
        self._current_worker: Optional[WorkerThread] = None

        self.session = Session()

        self._settings_manager.add_observer(self._on_settings_changed)

        self._setup_ui()
        self._setup_menus()
        self._setup_statusbar()
        self._setup_connections()
        self._apply_display_settings()

    def _setup_ui(self) -> None:
        """Set up the main UI layout."""
        self.setWindowTitle(APP_NAME)
        self.setMinimumSize(900, 600)
        display = self._settings.display
        self.resize(display.window_width, display.window_height)

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(6, 6, 6, 6)

        prompt_bar = QHBoxLayout()
        self._name_edit = QLineEdit(self.session.name)
        self._name_edit.setPlaceholderText("Comparison name...")
        self._name_edit.setMaximumWidth(240)
        prompt_bar.addWidget(self._name_edit)

        self._prompt_edit = QLineEdit()
        self._prompt_edit.setPlaceholderText("Enter a prompt to send to both models...")
        prompt_bar.addWidget(self._prompt_edit, 1)

        self._send_button = QPushButton("Send")
        prompt_bar.addWidget(self._send_button)
        layout.addLayout(prompt_bar)

        self.panels = SideBySidePanels(dark=display.dark_mode)
        self.panels.bind_stores(self.session.stores.a, self.session.stores.b)
        layout.addWidget(self.panels, 1)

        self.setCentralWidget(central)

    def _setup_menus(self) -> None:
        """Set up the menu bar."""
        menubar = self.menuBar()

        # File menu
        file_menu = menubar.addMenu("&File")

        self._action_new = QAction("&New Comparison", self)
        self._action_new.setShortcut(QKeySequence.StandardKey.New)
        self._action_new.triggered.connect(self._on_new)
        file_menu.addAction(self._action_new)

        self._action_open = QAction("&Open Comparison...", self)
        self._action_open.setShortcut(QKeySequence.StandardKey.Open)
        self._action_open.triggered.connect(self._on_open)
        file_menu.addAction(self._action_open)

        self._action_save = QAction("&Save", self)
        self._action_save.setShortcut(QKeySequence.StandardKey.Save)
        self._action_save.triggered.connect(self._on_save)
        file_menu.addAction(self._action_save)

        file_menu.addSeparator()

        export_menu = file_menu.addMenu("&Export")
        for label, extension in (("JSON", "json"), ("Text", "txt"), ("Markdown", "md"), ("PDF", "pdf")):
            action = QAction(f"As {label}...", self)
            action.triggered.connect(lambda _checked=False, ext=extension: self._on_export(ext))
            export_menu.addAction(action)

        file_menu.addSeparator()

        self._action_exit = QAction("E&xit", self)
        self._action_exit.setShortcut(QKeySequence.StandardKey.Quit)
        self._action_exit.triggered.connect(self.close)
        file_menu.addAction(self._action_exit)

        # View menu
        view_menu = menubar.addMenu("&View")

        self._action_diff = QAction("Show &Diff", self)
        self._action_diff.setShortcut(QKeySequence("Ctrl+D"))
        self._action_diff.setCheckable(True)
        self._action_diff.setEnabled(False)
        self._action_diff.toggled.connect(self._on_toggle_diff)
        view_menu.addAction(self._action_diff)

        self._action_highlight_lines = QAction("&Highlight Annotated Lines", self)
        self._action_highlight_lines.setCheckable(True)
        self._action_highlight_lines.setChecked(self._settings.display.highlight_annotated_lines)
        self._action_highlight_lines.toggled.connect(self._on_toggle_highlight_lines)
        view_menu.addAction(self._action_highlight_lines)

    def _setup_statusbar(self) -> None:
        self._status_label = QLabel("Ready")
        self.statusBar().addWidget(self._status_label, 1)

    def _setup_connections(self) -> None:
        self._send_button.clicked.connect(self._on_send)
        self._prompt_edit.returnPressed.connect(self._on_send)
        self._name_edit.textEdited.connect(self._on_name_edited)
        self.panels.line_selected.connect(self._on_line_selected)

    def _apply_display_settings(self) -> None:
        display = self._settings.display
        for editor in self.panels.editors.values():
            editor.apply_settings(display, self._settings.colors)

    def _on_settings_changed(self, settings: ApplicationSettings) -> None:
        self._settings = settings
        self._apply_display_settings()

    # === Session ===

    def load_comparison(self, comparison: Comparison) -> None:
        """Show a saved comparison."""
        self.session.load(comparison)
        self._name_edit.setText(self.session.name)
        self._prompt_edit.setText(self.session.prompt)
        self._refresh_panels()
        self._status_label.setText(f"Loaded '{self.session.name}'")

    def _refresh_panels(self) -> None:
        self.panels.set_outputs(self.session.output(PanelId.A), self.session.output(PanelId.B))
        can_diff = self.session.can_diff
        self._action_diff.setEnabled(can_diff)
        if not can_diff:
            self._action_diff.setChecked(False)
        self._on_toggle_diff(self._action_diff.isChecked())

    # === Slots ===

    @pyqtSlot()
    def _on_send(self) -> None:
        prompt = self._prompt_edit.text()
        if not prompt.strip() or self._current_worker is not None:
            return

        worker = GenerationWorker(prompt, self._settings.slot_a, self._settings.slot_b, self._backend)
        worker.signals.finished.connect(lambda result: self._on_dispatch_finished(prompt, result))
        worker.signals.error.connect(self._on_dispatch_error)
        thread = WorkerThread(worker)
        thread.finished.connect(self._on_worker_thread_finished)
        self._current_worker = thread

        self._send_button.setEnabled(False)
        self._status_label.setText("Generating...")
        thread.start()

    def _on_dispatch_finished(self, prompt: str, result: DispatchResult) -> None:
        self.session.apply_dispatch(prompt, result.output_a, result.output_b)
        self._refresh_panels()
        failed = [p.value for p, output in result.outputs.items() if output.is_error]
        self._status_label.setText(
            f"Panel {', '.join(failed)} failed" if failed else "Responses received"
        )

    def _on_dispatch_error(self, error_type: str, message: str) -> None:
        logging.error(f"MainWindow - Generation failed ({error_type}): {message}")
        self._status_label.setText("Generation failed")
        QMessageBox.warning(self, "Generation Failed", message)

    def _on_worker_thread_finished(self) -> None:
        self._current_worker = None
        self._send_button.setEnabled(True)

    def _on_name_edited(self, text: str) -> None:
        self.session.name = text

    def _on_toggle_diff(self, checked: bool) -> None:
        self.session.diff_enabled = checked
        self.panels.set_diff(self.session.compute_diff() if checked else None)

    def _on_toggle_highlight_lines(self, checked: bool) -> None:
        self._settings.display.highlight_annotated_lines = checked
        self._settings_manager.save(self._settings)

    def _on_line_selected(self, panel: PanelId, start: int, end: int) -> None:
        """Open the edit surface for a clicked line or range."""
        editor = self.session.editor(panel)
        existing = self.panels.editors[panel].anchored_at(start) if start == end else []
        if existing:
            editor.start_edit_annotation(existing[0].id)
        else:
            editor.start_annotation(start, end if end != start else None)

        dialog = AnnotationDialog(editor.state, self)
        code = dialog.exec()
        if code == AnnotationDialog.DELETE and editor.state.annotation_id:
            self.session.stores.delete(panel, editor.state.annotation_id)
            editor.cancel()
        elif code == AnnotationDialog.DialogCode.Accepted.value:
            annotation_type, content = dialog.values()
            editor.submit(annotation_type, content)
        else:
            editor.cancel()

    def _on_new(self) -> None:
        self.session.new()
        self._name_edit.setText(self.session.name)
        self._prompt_edit.clear()
        self._refresh_panels()
        self._status_label.setText("Ready")

    def _on_open(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "Open Comparison", self._settings.last_directory, "Comparison (*.json)"
        )
        if not path:
            return
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            QMessageBox.warning(self, "Open Failed", f"Could not read {path}:\n{e}")
            return
        self._settings.last_directory = str(Path(path).parent)
        self._settings_manager.add_recent_comparison(path)
        self.load_comparison(Comparison.from_dict(data))

    def _on_save(self) -> None:
        comparison = self.session.build_comparison()
        if self._store.save(comparison):
            self._status_label.setText("Saved")
        else:
            self._status_label.setText("Save failed (see log)")

    def _on_export(self, extension: str) -> None:
        comparison = self.session.build_comparison()
        directory = self._settings.export.export_directory or self._settings.last_directory
        default = str(Path(directory) / safe_filename(comparison.name, extension)) if directory \
            else safe_filename(comparison.name, extension)
        path, _ = QFileDialog.getSaveFileName(self, "Export Comparison", default)
        if not path:
            return

        try:
            if extension == 'pdf':
                from llmbench.core.export.pdf_writer import export_as_pdf
                export = self._settings.export
                export_as_pdf(comparison, path, diff=self.session.compute_diff(),
                              geometry=export.geometry(), styles=export.styles(),
                              with_diff=export.highlight_diff)
            else:
                renderers = {'json': export_as_json, 'txt': export_as_text, 'md': export_as_markdown}
                result = self._file_io.write_text(path, renderers[extension](comparison))
                if not result.success:
                    raise IOError(result.error)
        except Exception as e:
            logging.error(f"MainWindow - Export failed: {e}")
            QMessageBox.critical(self, "Export Failed", str(e))
            return

        self._status_label.setText(f"Exported to {path}")

    def closeEvent(self, event: QCloseEvent) -> None:
        if self._current_worker is not None:
            self._current_worker.cancel()
            self._current_worker.wait(2000)
        self._settings.display.window_width = self.width()
        self._settings.display.window_height = self.height()
        self._settings_manager.save(self._settings)
        event.accept()
