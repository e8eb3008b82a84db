from llmbench.core.annotations import (
    AnnotationEditor,
    AnnotationStore,
    EditMode,
    PanelRenderModel,
    annotated_lines,
    group_by_display_line,
    split_links,
)
from llmbench.core.models import AnnotationType, PanelId


def _editor():
    store = AnnotationStore(PanelId.A)
    return store, AnnotationEditor(store)


def test_edit_round_trip_keeps_range():
    store, editor = _editor()

    editor.start_annotation(3, 5)
    assert editor.state.mode is EditMode.CREATING
    assert editor.state.line_number == 5
    assert editor.state.start_line_number == 3

    created = editor.submit(AnnotationType.PATTERN, "three lines of setup")
    assert editor.state.mode is EditMode.IDLE
    assert (created.line_number, created.end_line_number) == (3, 5)

    editor.start_edit_annotation(created.id)
    assert editor.state.mode is EditMode.EDITING
    assert editor.state.initial_type is AnnotationType.PATTERN
    assert editor.state.initial_content == "three lines of setup"

    updated = editor.submit("critique", "revised")
    assert updated.id == created.id
    assert updated.type is AnnotationType.CRITIQUE
    assert updated.content == "revised"
    assert (updated.line_number, updated.end_line_number) == (3, 5)
    assert len(store) == 1


def test_reversed_range_is_normalized():
    _, editor = _editor()
    editor.start_annotation(9, 4)
    assert editor.state.anchor == (4, 9)


def test_same_start_and_end_is_a_single_line():
    _, editor = _editor()
    editor.start_annotation(6, 6)
    assert editor.state.anchor == (6, None)


def test_starting_a_new_edit_abandons_the_pending_one():
    store, editor = _editor()

    assert editor.start_annotation(2) is None
    abandoned = editor.start_annotation(8)

    assert abandoned.mode is EditMode.CREATING
    assert abandoned.line_number == 2
    assert editor.state.line_number == 8
    assert len(store) == 0


def test_cancel_returns_to_idle_without_writing():
    store, editor = _editor()
    editor.start_annotation(1)
    editor.cancel()
    assert not editor.state.is_active
    assert editor.submit("observation", "ignored") is None
    assert len(store) == 0


def test_edit_of_unknown_id_keeps_state():
    _, editor = _editor()
    editor.start_annotation(4)
    assert editor.start_edit_annotation("missing") is None
    assert editor.state.mode is EditMode.CREATING


def test_submit_after_delete_returns_none():
    store, editor = _editor()
    annotation = store.create(2)
    editor.start_edit_annotation(annotation.id)
    store.delete(annotation.id)
    assert editor.submit("question", "gone") is None
    assert not editor.state.is_active


def test_editor_observers_see_transitions():
    _, editor = _editor()
    modes = []
    editor.add_observer(lambda state: modes.append(state.mode))
    editor.start_annotation(1)
    editor.submit("context", "note")
    assert modes == [EditMode.CREATING, EditMode.IDLE]


def test_group_by_display_line_orders_lines_and_keeps_creation_order():
    store = AnnotationStore(PanelId.A)
    late = store.create(9)
    block = store.create(2, 4)
    single = store.create(4)

    grouped = group_by_display_line(store.annotations)

    assert list(grouped) == [4, 9]
    assert grouped[4] == [block, single]
    assert grouped[9] == [late]


def test_annotated_lines_cover_ranges():
    store = AnnotationStore(PanelId.A)
    store.create(2, 4)
    store.create(7)
    assert annotated_lines(store.annotations) == {2, 3, 4, 7}


def test_build_places_editor_in_line_order():
    store, editor = _editor()
    first = store.create(1)
    third = store.create(3)
    model = PanelRenderModel(store, editor)

    editor.start_annotation(2)
    placements = model.build(line_count=5)

    assert [p.display_line for p in placements] == [1, 2, 3]
    assert placements[0].annotation is first
    assert placements[1].is_editor and placements[1].annotation is None
    assert placements[2].annotation is third


def test_build_replaces_edited_annotation_with_editor():
    store, editor = _editor()
    annotation = store.create(2)
    model = PanelRenderModel(store, editor)

    editor.start_edit_annotation(annotation.id)
    placement, = model.build(line_count=3)

    assert placement.is_editor
    assert placement.annotation is annotation


def test_build_flags_orphaned_annotations():
    store = AnnotationStore(PanelId.A)
    inside = store.create(2)
    outside = store.create(12)
    model = PanelRenderModel(store)

    model.build(line_count=3)

    assert [p.annotation for p in model.orphaned()] == [outside]
    assert not outside.orphaned
    assert not inside.orphaned
    assert model.placements_for_line(2)[0].annotation is inside


def test_split_links_recognizes_http_and_www():
    parts = split_links("see https://example.com/a and www.example.org now")

    assert [p.text for p in parts] == [
        "see ", "https://example.com/a", " and ", "www.example.org", " now",
    ]
    assert parts[1].href == "https://example.com/a"
    assert parts[3].href == "https://www.example.org"
    assert not parts[0].is_link


def test_split_links_plain_text():
    parts = split_links("no links here")
    assert len(parts) == 1
    assert not parts[0].is_link
