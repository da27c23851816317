# tests/test_markers.py

from services.markers import PendingMarkerStore


def test_set_get_clear(tmp_path):
    store = PendingMarkerStore(str(tmp_path / "m" / "markers.json"))

    store.set("p@x.com", record_id="r1")
    assert store.get("p@x.com")["record_id"] == "r1"
    assert "marked_at" in store.get("p@x.com")

    assert store.clear("p@x.com") is True
    assert store.clear("p@x.com") is False
    assert store.all() == {}


def test_survives_reopen(tmp_path):
    path = str(tmp_path / "markers.json")
    PendingMarkerStore(path).set("p@x.com", record_id="r1")

    assert PendingMarkerStore(path).all()["p@x.com"]["record_id"] == "r1"


def test_unreadable_file_is_empty(tmp_path):
    path = tmp_path / "markers.json"
    path.write_text("{not json")

    assert PendingMarkerStore(str(path)).all() == {}
