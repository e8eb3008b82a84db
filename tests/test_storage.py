import json

from llmbench.services.storage import ComparisonStore


def test_missing_file_lists_nothing(tmp_path):
    store = ComparisonStore(tmp_path / "comparisons.json")
    assert store.list() == []
    assert store.get("nope") is None


def test_save_prepends_new_records(tmp_path, comparison):
    store = ComparisonStore(tmp_path / "comparisons.json")
    assert store.save(comparison)

    comparison.id = "cmp-2"
    comparison.name = "Second"
    assert store.save(comparison)

    assert [c.id for c in store.list()] == ["cmp-2", "cmp-1"]


def test_save_replaces_by_id_and_stamps_updated_at(tmp_path, comparison):
    store = ComparisonStore(tmp_path / "comparisons.json")
    store.save(comparison)

    comparison.name = "Renamed"
    store.save(comparison)

    saved = store.list()
    assert len(saved) == 1
    assert saved[0].name == "Renamed"
    assert saved[0].updated_at != "2025-03-01T12:00:00.000Z"
    assert saved[0].created_at == "2025-03-01T12:00:00.000Z"


def test_get_and_delete(tmp_path, comparison):
    store = ComparisonStore(tmp_path / "comparisons.json")
    store.save(comparison)

    assert store.get("cmp-1").name == "Cats and dogs"
    assert store.delete("cmp-1")
    assert not store.delete("cmp-1")
    assert store.list() == []


def test_file_is_a_json_array(tmp_path, comparison):
    path = tmp_path / "nested" / "comparisons.json"
    ComparisonStore(path).save(comparison)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert isinstance(data, list)
    assert data[0]["outputA"]["text"] == "the cat sat\non the mat"


def test_corrupt_file_is_logged_not_raised(tmp_path, caplog):
    path = tmp_path / "comparisons.json"
    path.write_text("{not json", encoding="utf-8")

    store = ComparisonStore(path)
    assert store.list() == []
    assert "Could not read" in caplog.text


def test_non_list_root_is_ignored(tmp_path):
    path = tmp_path / "comparisons.json"
    path.write_text('{"id": "x"}', encoding="utf-8")
    assert ComparisonStore(path).list() == []


def test_write_failure_returns_false(tmp_path, comparison):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")

    store = ComparisonStore(blocker / "comparisons.json")
    assert not store.save(comparison)
