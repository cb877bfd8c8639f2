import io
import json
import threading
import time

import pytest

from docchat import storage
from docchat.errors import NotFoundError, StorageError
from docchat.storage import DocumentStore, Registry, registry_lock


@pytest.fixture
def store(tmp_path):
    return DocumentStore(
        tmp_path / "uploads", tmp_path / "documents.json", tmp_path / "documents"
    )


def _registry_ids(tmp_path):
    data = json.loads((tmp_path / "documents.json").read_text(encoding="utf-8"))
    return [item["id"] for item in data]


def test_add_then_list_round_trip(store):
    payload = b"%PDF-1.7\n" + bytes(range(256)) * 10
    record = store.add(payload, "report.pdf", len(payload))

    records = store.list()
    assert [r.id for r in records] == [record.id]
    assert records[0].name == "report.pdf"
    assert records[0].size == len(payload)
    assert records[0].path.endswith(f"{record.id}.pdf")
    with store.open(record.id) as fh:
        assert fh.read() == payload


def test_add_accepts_file_object(store):
    payload = b"x" * (3 * storage.CHUNK_SIZE + 17)
    record = store.add(io.BytesIO(payload), "big.pdf", len(payload))
    with store.open(record.id) as fh:
        assert fh.read() == payload


def test_list_preserves_registration_order(store):
    ids = [store.add(b"a", f"{i}.pdf", 1).id for i in range(5)]
    assert [r.id for r in store.list()] == ids


def test_ids_are_unique(store):
    ids = {store.add(b"a", "same.pdf", 1).id for _ in range(50)}
    assert len(ids) == 50
    assert len(store.list()) == 50


def test_registry_is_json_array_on_disk(store, tmp_path):
    first = store.add(b"a", "a.pdf", 1)
    second = store.add(b"b", "b.pdf", 1)
    assert _registry_ids(tmp_path) == [first.id, second.id]


def test_remove_deletes_record_file_and_directory(store, tmp_path):
    record = store.add(b"data", "a.pdf", 4)
    doc_dir = tmp_path / "documents" / record.id
    doc_dir.mkdir(parents=True)
    (doc_dir / "metadata.json").write_text("{}", encoding="utf-8")

    store.remove(record.id)

    assert record.id not in [r.id for r in store.list()]
    assert not doc_dir.exists()
    assert not (tmp_path / "uploads" / f"{record.id}.pdf").exists()


def test_remove_absent_id_leaves_registry_unchanged(store, tmp_path):
    record = store.add(b"data", "a.pdf", 4)
    before = (tmp_path / "documents.json").read_bytes()
    with pytest.raises(NotFoundError):
        store.remove("missing")
    assert (tmp_path / "documents.json").read_bytes() == before
    assert [r.id for r in store.list()] == [record.id]


def test_get_unknown_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.get("nope")


def test_failed_registry_write_removes_stored_file(store, tmp_path, monkeypatch):
    def boom(path, data):
        raise OSError("disk full")

    monkeypatch.setattr(storage, "atomic_write_json", boom)
    with pytest.raises(StorageError):
        store.add(b"data", "a.pdf", 4)
    assert list((tmp_path / "uploads").iterdir()) == []
    assert store.list() == []


def test_corrupt_registry_loads_empty(tmp_path, caplog):
    path = tmp_path / "documents.json"
    path.write_text("{not json", encoding="utf-8")
    with caplog.at_level("ERROR"):
        registry = Registry(path)
    assert registry.snapshot() == []
    assert "Failed to read registry" in caplog.text


def test_add_on_corrupt_registry_keeps_file(store, tmp_path):
    store.add(b"a", "a.pdf", 1)
    path = tmp_path / "documents.json"
    path.write_bytes(path.read_bytes()[:-3])
    before = path.read_bytes()

    with pytest.raises(StorageError):
        store.add(b"b", "b.pdf", 1)
    with pytest.raises(StorageError):
        store.remove("anything")

    assert path.read_bytes() == before
    assert len(list((tmp_path / "uploads").glob("*.pdf"))) == 1


def test_size_is_counted_from_written_bytes(store, caplog):
    with caplog.at_level("WARNING"):
        record = store.add(io.BytesIO(b"12345"), "a.pdf", 999)
    assert record.size == 5
    assert store.get(record.id).size == 5
    assert "differs from 5 bytes written" in caplog.text


def test_module_has_docstring():
    assert storage.__doc__ and "JSON" in storage.__doc__


def test_lock_is_shared_per_registry_path(tmp_path):
    a = Registry(tmp_path / "documents.json")
    b = Registry(tmp_path / "." / "documents.json")
    assert a._lock is b._lock
    assert registry_lock(tmp_path / "other.json") is not a._lock


def test_two_stores_on_one_registry_see_each_other(tmp_path):
    first = DocumentStore(tmp_path / "uploads", tmp_path / "documents.json")
    second = DocumentStore(tmp_path / "uploads", tmp_path / "documents.json")
    a = first.add(b"a", "a.pdf", 1)
    b = second.add(b"b", "b.pdf", 1)
    assert [r.id for r in first.list()] == [a.id, b.id]


def test_concurrent_remove_and_two_adds(store, tmp_path, monkeypatch):
    victim = store.add(b"old", "old.pdf", 3)

    # Замедляем запись, чтобы без блокировки операции перекрывались.
    original = storage.atomic_write_json

    def slow_write(path, data):
        time.sleep(0.02)
        original(path, data)

    monkeypatch.setattr(storage, "atomic_write_json", slow_write)

    barrier = threading.Barrier(3)
    added = []
    errors = []

    def add(name):
        try:
            barrier.wait()
            added.append(store.add(name.encode(), name, len(name)).id)
        except Exception as exc:  # pragma: no cover - surfaced below
            errors.append(exc)

    def remove():
        try:
            barrier.wait()
            store.remove(victim.id)
        except Exception as exc:  # pragma: no cover - surfaced below
            errors.append(exc)

    threads = [
        threading.Thread(target=add, args=("a.pdf",)),
        threading.Thread(target=add, args=("b.pdf",)),
        threading.Thread(target=remove),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    ids = _registry_ids(tmp_path)
    assert sorted(ids) == sorted(added)
    assert len(ids) == 2
    assert victim.id not in ids
