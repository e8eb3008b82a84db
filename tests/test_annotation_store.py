import pytest

from llmbench.core.annotations import AnnotationStore, AnnotationStores
from llmbench.core.models import AnnotationError, AnnotationType, PanelId


def test_create_assigns_id_and_anchor():
    store = AnnotationStore(PanelId.A)
    annotation = store.create(3, 5, AnnotationType.PATTERN, "repeats the opener")

    assert annotation.id
    assert annotation.panel_id is PanelId.A
    assert annotation.line_number == 3
    assert annotation.end_line_number == 5
    assert annotation.display_line == 5
    assert annotation.is_block
    assert annotation.line_ref == "L3-5"
    assert annotation.created_at.endswith("Z")
    assert len(store) == 1


def test_single_line_annotation_displays_at_its_line():
    store = AnnotationStore("B")
    annotation = store.create(7, type="question", content="why?")

    assert annotation.panel_id is PanelId.B
    assert annotation.type is AnnotationType.QUESTION
    assert not annotation.is_block
    assert annotation.display_line == 7
    assert annotation.line_ref == "L7"


@pytest.mark.parametrize("start,end", [(0, None), (-2, None), (5, 4), (1, 0)])
def test_invalid_anchors_raise(start, end):
    store = AnnotationStore(PanelId.A)
    with pytest.raises(AnnotationError):
        store.create(start, end)
    assert len(store) == 0


def test_unknown_type_raises_value_error():
    store = AnnotationStore(PanelId.A)
    with pytest.raises(ValueError):
        store.create(1, type="rant")


def test_lines_past_the_end_are_accepted():
    store = AnnotationStore(PanelId.A)
    annotation = store.create(500)
    assert annotation.line_number == 500


def test_update_changes_type_and_content_only():
    store = AnnotationStore(PanelId.A)
    annotation = store.create(2, 4, AnnotationType.CONTEXT, "before")

    assert store.update(annotation.id, "critique", "after")

    updated = store.get(annotation.id)
    assert updated.type is AnnotationType.CRITIQUE
    assert updated.content == "after"
    assert (updated.line_number, updated.end_line_number) == (2, 4)


def test_update_and_delete_unknown_id_return_false():
    store = AnnotationStore(PanelId.A)
    store.create(1)

    assert not store.update("missing", AnnotationType.OBSERVATION, "x")
    assert not store.delete("missing")
    assert len(store) == 1


def test_delete_removes_by_id():
    store = AnnotationStore(PanelId.A)
    first = store.create(1)
    second = store.create(1)

    assert store.delete(first.id)
    assert first.id not in store
    assert second.id in store


def test_duplicate_anchors_are_allowed():
    store = AnnotationStore(PanelId.A)
    store.create(4)
    store.create(4)
    store.create(2, 6)
    store.create(3, 5)
    assert len(store) == 4
    assert len({a.id for a in store}) == 4


def test_annotations_is_a_snapshot():
    store = AnnotationStore(PanelId.A)
    store.create(1)
    snapshot = store.annotations
    snapshot.clear()
    assert len(store) == 1


def test_observers_receive_panel_and_snapshot():
    store = AnnotationStore(PanelId.B)
    calls = []
    store.add_observer(lambda panel, annotations: calls.append((panel, len(annotations))))

    annotation = store.create(1)
    store.update(annotation.id, "metaphor", "x")
    store.delete(annotation.id)

    assert calls == [(PanelId.B, 1), (PanelId.B, 1), (PanelId.B, 0)]


def test_failing_observer_does_not_break_mutation():
    store = AnnotationStore(PanelId.A)

    def broken(panel, annotations):
        raise RuntimeError("boom")

    store.add_observer(broken)
    store.create(1)
    assert len(store) == 1


def test_replace_all_rehomes_annotations():
    source = AnnotationStore(PanelId.A)
    annotation = source.create(2, content="moved")

    target = AnnotationStore(PanelId.B)
    target.replace_all([annotation])

    assert target.annotations[0].panel_id is PanelId.B
    assert target.get(annotation.id).content == "moved"


def test_stores_are_independent_per_panel():
    stores = AnnotationStores()
    annotation = stores.create(PanelId.A, 3)

    assert len(stores.a) == 1
    assert len(stores.b) == 0
    assert not stores.delete(PanelId.B, annotation.id)
    assert stores.delete("a", annotation.id)


def test_unknown_panel_raises_key_error():
    stores = AnnotationStores()
    with pytest.raises(KeyError):
        stores["C"]


def test_clear_empties_both_panels():
    stores = AnnotationStores()
    stores.create(PanelId.A, 1)
    stores.create(PanelId.B, 2)
    stores.clear()
    assert len(stores.a) == 0
    assert len(stores.b) == 0
