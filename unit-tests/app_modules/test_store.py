# Test the document store backends

import pytest
import sys
import os
import json
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', 'app'))
import mysql.connector
from unittest.mock import patch, MagicMock
import store
from store import MemoryStore, MySQLStore, StoreError, split_path, flatten, unflatten, prune

def test_split_path():
    assert split_path("events/abc") == ["events", "abc"]
    assert split_path("/events/abc/") == ["events", "abc"]
    for bad in ["", "/", "events//abc", "events/a.b", "events/a#b", "a$b", "x/[y]"]:
        with pytest.raises(StoreError):
            split_path(bad)

def test_memory_set_and_get():
    s = MemoryStore()
    s.set("events/e1", {"title": "Standup", "participants": ["a", "b"]})
    assert s.get("events/e1") == {"title": "Standup", "participants": ["a", "b"]}
    assert s.get("events/e1/title") == "Standup"
    assert s.get("events") == {"e1": {"title": "Standup", "participants": ["a", "b"]}}
    assert s.get("events/missing") is None
    assert s.get("events/e1/title/deeper") is None

def test_memory_get_returns_copies():
    s = MemoryStore()
    s.set("events/e1", {"participants": ["a"]})
    s.get("events/e1")["participants"].append("b")
    assert s.get("events/e1/participants") == ["a"]

def test_memory_set_drops_none_and_empty():
    s = MemoryStore()
    s.set("events/e1", {"title": "x", "image_url": None, "extra": {}})
    assert s.get("events/e1") == {"title": "x"}
    s.set("events/e1", None)
    assert s.get("events") is None

def test_memory_set_replaces_subtree():
    s = MemoryStore()
    s.set("events/e1", {"title": "x", "location": "y"})
    s.set("events/e1", {"title": "z"})
    assert s.get("events/e1") == {"title": "z"}

def test_memory_set_below_a_leaf():
    s = MemoryStore()
    s.set("a", 1)
    s.set("a/b", 2)
    assert s.get("a") == {"b": 2}

def test_memory_update():
    s = MemoryStore()
    s.set("users/alice", {"is_admin": False, "email": "a@example.com"})
    s.update("users/alice", {"is_admin": True, "email": None})
    assert s.get("users/alice") == {"is_admin": True}

def test_memory_remove_prunes_empty_parents():
    s = MemoryStore()
    s.set("users/alice/events/e1", {"title": "x"})
    s.set("users/bob/events/e2", {"title": "y"})
    s.remove("users/alice/events/e1")
    assert s.get("users") == {"bob": {"events": {"e2": {"title": "y"}}}}
    # Removing something absent is fine
    s.remove("users/alice/events/e1")
    s.remove("nothing/here")

def test_push_returns_fresh_keys_without_writing():
    s = MemoryStore()
    first = s.push("events")
    second = s.push("events")
    assert first != second
    assert s.get("events") is None
    with pytest.raises(StoreError):
        s.push("bad.path")

def test_prune():
    assert prune({"a": None, "b": {"c": None}}) is None
    assert prune({"a": [1, None]}) == {"a": [1, None]}
    assert prune(0) == 0

def test_flatten_and_unflatten():
    rows = flatten("events/e1", {"title": "x", "meta": {"n": 1, "skip": None}, "tags": ["a"]})
    assert sorted(rows) == [("events/e1/meta/n", 1), ("events/e1/tags", ["a"]), ("events/e1/title", "x")]
    assert unflatten("events/e1", rows) == {"title": "x", "meta": {"n": 1}, "tags": ["a"]}
    assert unflatten("events", rows) == {"e1": {"title": "x", "meta": {"n": 1}, "tags": ["a"]}}
    assert unflatten("events/e1/title", [("events/e1/title", "x")]) == "x"
    assert unflatten("events/e2", []) is None

def test_flatten_rejects_bad_keys():
    with pytest.raises(StoreError):
        flatten("events/e1", {"a.b": 1})

@pytest.fixture
def mock_db():
    cursor = MagicMock()
    connection = MagicMock()
    with patch("store.database.get_cursor", return_value=cursor), \
         patch("store.database.get_connection", return_value=connection):
        yield cursor, connection

def executed(cursor):
    return [c.args for c in cursor.execute.call_args_list]

def test_mysql_get_reassembles_rows(mock_db):
    cursor, _ = mock_db
    cursor.fetchall.return_value = [
        ("events/e1/participants", json.dumps(["a"])),
        ("events/e1/title", json.dumps("Standup")),
    ]
    assert MySQLStore().get("events/e1") == {"participants": ["a"], "title": "Standup"}
    query, params = executed(cursor)[-1]
    assert "path LIKE %s" in query
    assert params == ("events/e1", "events/e1/%")

def test_mysql_get_escapes_like_wildcards(mock_db):
    cursor, _ = mock_db
    cursor.fetchall.return_value = []
    assert MySQLStore().get("events/s_1-0001") is None
    _, params = executed(cursor)[-1]
    assert params == ("events/s_1-0001", "events/s\\_1-0001/%")

def test_mysql_set_writes_leaf_rows(mock_db):
    cursor, connection = mock_db
    MySQLStore().set("events/e1", {"title": "x", "tags": ["a"], "image_url": None})
    inserts = [params for query, *rest in executed(cursor) if query.startswith("INSERT") for params in rest]
    assert sorted(inserts) == [("events/e1/tags", '["a"]'), ("events/e1/title", '"x"')]
    # Ancestor leaves are cleared
    assert ("DELETE FROM documents WHERE path = %s", ("events",)) in executed(cursor)
    connection.commit.assert_called_once()

def test_mysql_set_none_removes(mock_db):
    cursor, connection = mock_db
    MySQLStore().set("events/e1", None)
    assert not any(query.startswith("INSERT") for query, *_ in executed(cursor))
    connection.commit.assert_called_once()

def test_mysql_update(mock_db):
    cursor, connection = mock_db
    MySQLStore().update("users/alice", {"is_admin": True, "email": None})
    inserts = [rest[0] for query, *rest in executed(cursor) if query.startswith("INSERT")]
    assert inserts == [("users/alice/is_admin", "true")]
    connection.commit.assert_called_once()

def test_mysql_errors_become_store_errors(mock_db):
    cursor, connection = mock_db
    cursor.execute.side_effect = mysql.connector.Error("connection lost")
    with pytest.raises(StoreError, match="connection lost"):
        MySQLStore().set("events/e1", {"title": "x"})
    connection.rollback.assert_called_once()
    with pytest.raises(StoreError):
        MySQLStore().get("events/e1")
    with pytest.raises(StoreError):
        MySQLStore().remove("events/e1")

def test_get_store(monkeypatch):
    monkeypatch.setattr(store, "_store", None)
    monkeypatch.setattr(store, "STORE_BACKEND", "memory")
    first = store.get_store()
    assert isinstance(first, MemoryStore)
    assert store.get_store() is first

    monkeypatch.setattr(store, "_store", None)
    monkeypatch.setattr(store, "STORE_BACKEND", "mysql")
    assert isinstance(store.get_store(), MySQLStore)

    monkeypatch.setattr(store, "_store", None)
    monkeypatch.setattr(store, "STORE_BACKEND", "firebase")
    with pytest.raises(StoreError):
        store.get_store()
