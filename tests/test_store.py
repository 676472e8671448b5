"""Tests for the fingerprint store and its on-disk snapshot."""

import json
import os
import stat

import pytest

from tamperwatch.core.errors import CorruptStateError, PersistenceError
from tamperwatch.core.store import FingerprintStore

H1 = "a" * 64
H2 = "b" * 64


def test_load_missing_file_returns_empty_store(tmp_path):
    store = FingerprintStore.load(tmp_path / "missing.json")
    assert len(store) == 0
    assert not store.dirty


def test_save_then_load_round_trip(tmp_path):
    store = FingerprintStore({"/srv/a.txt": H1, "/srv/b/c.php": H2})
    path = tmp_path / "db" / "hashdb.json"
    store.save(path)
    assert FingerprintStore.load(path) == store


def test_save_writes_sorted_pretty_json(tmp_path):
    store = FingerprintStore({"/z": H1, "/a": H2})
    path = tmp_path / "hashdb.json"
    store.save(path)
    text = path.read_text(encoding="utf-8")
    assert text.index('"/a"') < text.index('"/z"')
    assert json.loads(text) == {"/a": H2, "/z": H1}


def test_save_leaves_no_temp_files(tmp_path):
    FingerprintStore({"/a": H1}).save(tmp_path / "hashdb.json")
    assert sorted(p.name for p in tmp_path.iterdir()) == ["hashdb.json"]


def test_save_replaces_existing_snapshot(tmp_path):
    path = tmp_path / "hashdb.json"
    FingerprintStore({"/a": H1}).save(path)
    FingerprintStore({"/b": H2}).save(path)
    assert FingerprintStore.load(path).as_dict() == {"/b": H2}


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2, 3]",
        '{"/a": 5}',
        "",
    ],
)
def test_load_malformed_file_raises_corrupt_state(tmp_path, content):
    path = tmp_path / "hashdb.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(CorruptStateError):
        FingerprintStore.load(path)


def test_save_failure_raises_and_keeps_memory_state(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("file", encoding="utf-8")
    store = FingerprintStore()
    store.set("/a", H1)
    with pytest.raises(PersistenceError):
        store.save(blocker / "hashdb.json")
    assert store.get("/a") == H1
    assert store.dirty


def test_dirty_flag_tracks_mutations(tmp_path):
    store = FingerprintStore({"/a": H1})
    assert not store.dirty
    store.set("/a", H1)
    assert not store.dirty
    store.set("/a", H2)
    assert store.dirty
    store.save(tmp_path / "hashdb.json")
    assert not store.dirty
    store.delete("/missing")
    assert not store.dirty
    store.delete("/a")
    assert store.dirty
    assert "/a" not in store


def test_items_iterate_in_sorted_order():
    store = FingerprintStore({"/c": H1, "/a": H2, "/b": H1})
    assert [p for p, _ in store.items()] == ["/a", "/b", "/c"]
    assert store.paths() == ["/a", "/b", "/c"]


@pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
def test_new_snapshot_is_world_readable(tmp_path):
    path = tmp_path / "hashdb.json"
    FingerprintStore({"/a": H1}).save(path)
    assert stat.S_IMODE(path.stat().st_mode) == 0o644


@pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
def test_save_keeps_existing_snapshot_mode(tmp_path):
    path = tmp_path / "hashdb.json"
    FingerprintStore({"/a": H1}).save(path)
    os.chmod(path, 0o640)
    FingerprintStore({"/b": H2}).save(path)
    assert stat.S_IMODE(path.stat().st_mode) == 0o640
