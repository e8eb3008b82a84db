import pytest
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor, QTextCursor

from llmbench.core.annotations import AnnotationStore
from llmbench.core.diff.word_diff import compute_word_diff
from llmbench.core.models import AnnotationType, PanelId, PanelOutput, SegmentType
from llmbench.services.settings import (
    AnnotationBrightness,
    ColorSettings,
    DisplaySettings,
    LineHighlightIntensity,
    SettingsManager,
)
from llmbench.services.storage import ComparisonStore
from llmbench.ui.main_window import MainWindow
from llmbench.ui.widgets.panel_text_edit import PanelTextEdit, SideBySidePanels


def _background_at(editor, position):
    cursor = QTextCursor(editor.document())
    cursor.setPosition(position)
    return cursor.charFormat().background()


def test_plain_output_is_shown_verbatim(qapp):
    editor = PanelTextEdit(PanelId.A)
    editor.set_output(PanelOutput.success("first\nsecond"))

    assert editor.toPlainText() == "first\nsecond"
    assert editor.isReadOnly()


def test_error_output_ignores_segments(qapp):
    editor = PanelTextEdit(PanelId.B)
    editor.set_output(PanelOutput.failure("timeout"))
    editor.set_segments(compute_word_diff("a", "b").segments("B"))

    assert editor.toPlainText() == "Error: timeout"


def test_unique_type_follows_panel(qapp):
    assert PanelTextEdit(PanelId.A).unique_type is SegmentType.REMOVED
    assert PanelTextEdit(PanelId.B).unique_type is SegmentType.ADDED


def test_segments_highlight_only_unique_words(qapp):
    diff = compute_word_diff("the cat sat", "the dog sat")
    editor = PanelTextEdit(PanelId.A)
    editor.set_output(PanelOutput.success("the cat sat"))
    editor.set_segments(diff.segments("A"))

    assert editor.toPlainText() == "the cat sat"
    # format of the character before the cursor: 'c' of "cat", then 'h' of "the"
    assert _background_at(editor, 5).color() == editor.colors.removed_bg
    assert _background_at(editor, 2).style() == Qt.BrushStyle.NoBrush

    editor.set_segments(None)
    assert _background_at(editor, 5).style() == Qt.BrushStyle.NoBrush


def test_bound_store_drives_line_markers_and_tooltips(qapp):
    store = AnnotationStore(PanelId.A)
    editor = PanelTextEdit(PanelId.A)
    editor.set_output(PanelOutput.success("one\ntwo\nthree\nfour"))
    editor.bind_store(store)
    assert editor.annotated_line_numbers == set()

    question = store.create(1, type=AnnotationType.QUESTION, content="why this opener?")
    store.create(2, 3, AnnotationType.PATTERN, "list again")

    assert editor.annotated_line_numbers == {1, 2, 3}
    assert editor.tooltip_for_line(1) == "[Q] L1: why this opener?"
    assert editor.tooltip_for_line(3) == "[PAT] L2-3: list again"
    assert editor.tooltip_for_line(4) == ""
    assert [a.id for a in editor.annotations_at(1)] == [question.id]

    store.delete(question.id)
    assert editor.annotated_line_numbers == {2, 3}

    editor.bind_store(None)
    assert editor.annotated_line_numbers == set()
    store.create(4)
    assert editor.annotated_line_numbers == set()


def test_annotations_past_the_end_are_pinned_to_the_last_line(qapp):
    store = AnnotationStore(PanelId.A)
    editor = PanelTextEdit(PanelId.A)
    editor.set_output(PanelOutput.success("one\ntwo\nthree"))
    editor.bind_store(store)

    orphan = store.create(50, content="refers to the full answer")
    spill = store.create(2, 9, AnnotationType.PATTERN, "runs off the end")

    assert editor.annotated_line_numbers == {2, 3}
    assert [a.id for a in editor.anchored_at(3)] == [spill.id, orphan.id]
    assert editor.tooltip_for_line(3).endswith("L50: refers to the full answer")
    assert editor.annotation_marker_color(3) != editor.colors.line_number_fg
    assert not orphan.orphaned

    editor.set_output(PanelOutput.success("\n".join(str(i) for i in range(60))))
    assert [a.id for a in editor.anchored_at(50)] == [orphan.id]
    assert editor.anchored_at(60) == []


def test_side_by_side_diff_mode_toggles_scroll_sync(qapp, comparison):
    panels = SideBySidePanels()
    panels.set_outputs(comparison.output_a, comparison.output_b)

    assert not panels.diff_enabled
    assert "Claude Sonnet 4" in panels.headers[PanelId.A].text()
    assert "GPT-4o" in panels.headers[PanelId.B].text()

    panels.set_diff(compute_word_diff(comparison.output_a.text, comparison.output_b.text))
    assert panels.diff_enabled
    assert panels.sync.enabled

    panels.set_diff(None)
    assert not panels.diff_enabled

    panels.set_diff(compute_word_diff(comparison.output_a.text, comparison.output_b.text))
    panels.set_outputs(comparison.output_a, comparison.output_b)
    assert not panels.diff_enabled


def test_side_by_side_reemits_line_clicks_with_panel(qapp):
    panels = SideBySidePanels()
    selected = []
    panels.line_selected.connect(lambda panel, start, end: selected.append((panel, start, end)))

    panels.editors[PanelId.B].line_clicked.emit(2, 4)

    assert selected == [(PanelId.B, 2, 4)]


def test_main_window_loads_and_saves_comparison(qapp, tmp_path, comparison):
    store = ComparisonStore(tmp_path / "comparisons.json")
    window = MainWindow(
        settings_manager=SettingsManager(tmp_path / "settings.json"),
        store=store,
    )

    window.load_comparison(comparison)

    assert window.panels.editors[PanelId.A].toPlainText() == "the cat sat\non the mat"
    assert window.panels.editors[PanelId.B].toPlainText() == "the dog sat\non the mat"
    assert window._action_diff.isEnabled()

    window._action_diff.setChecked(True)
    assert window.panels.diff_enabled
    assert window.session.diff_enabled

    window._on_save()
    saved, = store.list()
    assert saved.name == "Cats and dogs"
    assert saved.output_b.text == "the dog sat\non the mat"


def test_display_settings_hide_annotations_and_set_colors(qapp):
    store = AnnotationStore(PanelId.B)
    editor = PanelTextEdit(PanelId.B)
    editor.set_output(PanelOutput.success("one\ntwo"))
    editor.bind_store(store)
    store.create(1, type=AnnotationType.CONTEXT, content="setting")

    display = DisplaySettings(
        prose_font_size=14,
        annotations_visible=False,
        brightness=AnnotationBrightness.LOW,
        line_highlight=LineHighlightIntensity.OFF,
    )
    editor.apply_settings(display, ColorSettings(added_background="#00ff00"))

    assert editor.font().pointSize() == 14
    assert editor.tooltip_for_line(1) == ""
    assert editor.colors.added_bg == QColor("#00ff00")
    assert editor.colors.annotated_line.alpha() == 0
    assert editor.annotation_marker_color(1).alphaF() == pytest.approx(0.2, abs=0.01)
    assert editor.toPlainText() == "one\ntwo"


def test_rich_tooltip_links_urls_and_escapes_markup(qapp):
    store = AnnotationStore(PanelId.A)
    editor = PanelTextEdit(PanelId.A)
    editor.set_output(PanelOutput.success("one"))
    editor.bind_store(store)
    store.create(1, type=AnnotationType.OBSERVATION, content="a<b> see www.example.org")

    tooltip = editor.tooltip_html_for_line(1)

    assert tooltip.startswith("<b>[OBS]</b> L1: a&lt;b&gt; see ")
    assert '<a href="https://www.example.org">www.example.org</a>' in tooltip


def test_annotation_dialog_is_seeded_from_edit_state(qapp):
    from llmbench.core.annotations import EditMode, EditState
    from llmbench.ui.widgets.annotation_dialog import AnnotationDialog

    state = EditState(
        mode=EditMode.EDITING,
        line_number=5,
        start_line_number=3,
        annotation_id="a1",
        initial_type=AnnotationType.PATTERN,
        initial_content="  repeats the opener ",
    )
    dialog = AnnotationDialog(state)

    assert dialog.windowTitle() == "Edit annotation (L3-5)"
    assert dialog.values() == (AnnotationType.PATTERN, "repeats the opener")

    dialog.type_combo.setCurrentIndex(list(AnnotationType).index(AnnotationType.CRITIQUE))
    assert dialog.values()[0] is AnnotationType.CRITIQUE
