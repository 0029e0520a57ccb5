import json
import os
import threading
import time

import pytest

from resumegpt.core.errors import PersistenceFailure, SessionNotFound
from resumegpt.core.store import (
    DEFAULT_TITLE,
    InMemorySessionStore,
    JSONFileSessionStore,
)


@pytest.fixture(params=["memory", "json"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemorySessionStore()
    return JSONFileSessionStore(data_path=str(tmp_path / "sessions"))


def test_create_then_update(any_store):
    any_store.save_session("s1", "u1", {"name": "Jane"}, [], title="First title")
    any_store.save_session("s1", "u1", {"name": "Jane Doe"}, [{"role": "user", "parts": [{"text": "hi"}]}], title="Ignored")

    record = any_store.load_session("s1", "u1")
    assert record.document == {"name": "Jane Doe"}
    assert len(record.messages) == 1
    assert record.title == "First title"
    assert record.template == "classic"


def test_sessions_are_scoped_by_owner(any_store):
    any_store.save_session("s1", "u1", {}, [])
    assert any_store.load_session("s1", "u2") is None
    assert any_store.list_sessions("u2") == []
    assert not any_store.delete_session("s1", "u2")


def test_list_rename_template_delete(any_store):
    any_store.save_session("a", "u1", {}, [])
    any_store.save_session("b", "u1", {}, [], title="Second")

    records = any_store.list_sessions("u1")
    assert {r.id for r in records} == {"a", "b"}
    assert records[0].created_at >= records[1].created_at
    assert any_store.load_session("a", "u1").title == DEFAULT_TITLE

    assert any_store.rename_session("a", "u1", "Renamed")
    assert any_store.set_template("a", "u1", "modern")
    record = any_store.load_session("a", "u1")
    assert (record.title, record.template) == ("Renamed", "modern")

    assert not any_store.rename_session("missing", "u1", "x")
    assert any_store.delete_session("a", "u1")
    assert any_store.load_session("a", "u1") is None


def test_require_session(any_store):
    any_store.save_session("s1", "u1", {}, [])
    assert any_store.require_session("s1", "u1").id == "s1"
    with pytest.raises(SessionNotFound):
        any_store.require_session("s1", "u2")


def test_session_id_is_checked(any_store):
    with pytest.raises(ValueError):
        any_store.load_session("../other", "u1")


def test_json_store_layout(tmp_path):
    store = JSONFileSessionStore(data_path=str(tmp_path))
    store.save_session("s1", "user@example.com", {"name": "Jane"}, [])

    (owner_dir,) = os.listdir(tmp_path)
    assert len(owner_dir) == 32 and "@" not in owner_dir
    with open(tmp_path / owner_dir / "s1.json", encoding="utf-8") as f:
        assert json.load(f)["document"] == {"name": "Jane"}


def test_json_store_corrupt_file(tmp_path):
    store = JSONFileSessionStore(data_path=str(tmp_path))
    store.save_session("s1", "u1", {}, [])
    (owner_dir,) = os.listdir(tmp_path)
    with open(tmp_path / owner_dir / "s1.json", "w", encoding="utf-8") as f:
        f.write("{ truncated")

    with pytest.raises(PersistenceFailure):
        store.load_session("s1", "u1")


class SlowStore(InMemorySessionStore):
    def _read(self, session_id, owner_id):
        record = super()._read(session_id, owner_id)
        time.sleep(0.05)
        return record


def test_concurrent_save_keeps_rename():
    store = SlowStore()
    store.save_session("s1", "u1", {"name": "Old"}, [])

    saver = threading.Thread(target=store.save_session, args=("s1", "u1", {"name": "New"}, []))
    saver.start()
    time.sleep(0.01)
    assert store.rename_session("s1", "u1", "Renamed")
    saver.join()

    record = store.load_session("s1", "u1")
    assert record.title == "Renamed"
    assert record.document == {"name": "New"}
