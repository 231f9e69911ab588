# Document store primitives: get, set, update, remove and push over slash-separated paths

import os
import copy
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import mysql.connector

import database
import utils

logger = logging.getLogger(__name__)

STORE_BACKEND = os.getenv("STORE_BACKEND", "mysql")

FORBIDDEN_KEY_CHARS = set(".#$[]")


class StoreError(Exception):
    """A persistence operation failed."""


def split_path(path: str) -> List[str]:
    """Split a store path into its keys, rejecting empty paths and reserved characters."""
    keys = [key for key in path.strip("/").split("/")]
    if not keys or any(not key for key in keys):
        raise StoreError(f"Invalid store path: '{path}'")
    for key in keys:
        if FORBIDDEN_KEY_CHARS & set(key):
            raise StoreError(f"Invalid character in store key '{key}'")
    return keys


class DocumentStore:
    """A tree of JSON values addressed by paths like 'events/abc'."""

    def get(self, path: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, path: str, value: Any) -> None:
        raise NotImplementedError

    def update(self, path: str, partial: Dict[str, Any]) -> None:
        """Set each child of ``path`` named in ``partial``, leaving other children alone."""
        for key, value in partial.items():
            self.set(f"{path}/{key}", value)

    def remove(self, path: str) -> None:
        raise NotImplementedError

    def push(self, path: str) -> str:
        """Reserve a fresh child key under ``path``. Nothing is written."""
        split_path(path)
        return utils.generate_push_id()


def prune(value: Any) -> Optional[Any]:
    """Drop None children and empty dicts, which the store never keeps."""
    if isinstance(value, dict):
        pruned = {}
        for key, child in value.items():
            split_path(str(key))
            child = prune(child)
            if child is not None:
                pruned[key] = child
        return pruned or None
    return value


class MemoryStore(DocumentStore):
    """Process-local store, used for development and tests."""

    def __init__(self):
        self._root: Dict[str, Any] = {}

    def get(self, path):
        node = self._root
        for key in split_path(path):
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        return copy.deepcopy(node)

    def set(self, path, value):
        value = prune(value)
        if value is None:
            self.remove(path)
            return
        keys = split_path(path)
        node = self._root
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = node[key] = {}
            node = child
        node[keys[-1]] = copy.deepcopy(value)

    def remove(self, path):
        keys = split_path(path)
        trail = [self._root]
        for key in keys[:-1]:
            child = trail[-1].get(key)
            if not isinstance(child, dict):
                return
            trail.append(child)
        trail[-1].pop(keys[-1], None)
        # Drop parents left empty
        for depth in range(len(trail) - 1, 0, -1):
            if trail[depth]:
                break
            trail[depth - 1].pop(keys[depth - 1], None)


def flatten(path: str, value: Any) -> List[Tuple[str, Any]]:
    """Turn a value into (path, leaf) pairs; dicts become children, everything else is a leaf."""
    if isinstance(value, dict):
        rows = []
        for key, child in value.items():
            if child is None:
                continue
            split_path(str(key))
            rows.extend(flatten(f"{path}/{key}", child))
        return rows
    return [(path, value)]


def unflatten(path: str, rows: List[Tuple[str, Any]]) -> Optional[Any]:
    """Rebuild the value at ``path`` from leaf rows at or below it."""
    tree: Dict[str, Any] = {}
    for row_path, value in rows:
        if row_path == path:
            return value
        keys = row_path[len(path) + 1:].split("/")
        node = tree
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value
    return tree or None


def _like_prefix(path: str) -> str:
    escaped = path.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}/%"


class MySQLStore(DocumentStore):
    """Store backed by the MySQL 'documents' table, one row per leaf value."""

    def get(self, path):
        path = "/".join(split_path(path))
        try:
            with database.transaction() as cursor:
                cursor.execute(
                    "SELECT path, value FROM documents WHERE path = %s OR path LIKE %s ORDER BY path",
                    (path, _like_prefix(path))
                )
                rows = [(row[0], json.loads(row[1])) for row in cursor.fetchall()]
        except mysql.connector.Error as e:
            logger.error(f"Failed to read '{path}': {e}")
            raise StoreError(f"Failed to read '{path}': {e}") from e
        return unflatten(path, rows)

    def _delete_subtree(self, cursor, path):
        cursor.execute("DELETE FROM documents WHERE path = %s OR path LIKE %s", (path, _like_prefix(path)))

    def _write(self, cursor, path, value):
        keys = path.split("/")
        ancestors = ["/".join(keys[:i]) for i in range(1, len(keys))]
        # A leaf stored at an ancestor would shadow the new children
        for ancestor in ancestors:
            cursor.execute("DELETE FROM documents WHERE path = %s", (ancestor,))
        self._delete_subtree(cursor, path)
        for row_path, leaf in flatten(path, value):
            cursor.execute(
                "INSERT INTO documents (path, value) VALUES (%s, %s)",
                (row_path, json.dumps(leaf))
            )

    def set(self, path, value):
        path = "/".join(split_path(path))
        try:
            with database.transaction() as cursor:
                if value is None:
                    self._delete_subtree(cursor, path)
                else:
                    self._write(cursor, path, value)
        except mysql.connector.Error as e:
            logger.error(f"Failed to write '{path}': {e}")
            raise StoreError(f"Failed to write '{path}': {e}") from e

    def update(self, path, partial):
        path = "/".join(split_path(path))
        children = {"/".join(split_path(f"{path}/{key}")): value for key, value in partial.items()}
        try:
            with database.transaction() as cursor:
                for child, value in children.items():
                    if value is None:
                        self._delete_subtree(cursor, child)
                    else:
                        self._write(cursor, child, value)
        except mysql.connector.Error as e:
            logger.error(f"Failed to update '{path}': {e}")
            raise StoreError(f"Failed to update '{path}': {e}") from e

    def remove(self, path):
        path = "/".join(split_path(path))
        try:
            with database.transaction() as cursor:
                self._delete_subtree(cursor, path)
        except mysql.connector.Error as e:
            logger.error(f"Failed to remove '{path}': {e}")
            raise StoreError(f"Failed to remove '{path}': {e}") from e


_store: Optional[DocumentStore] = None

def get_store() -> DocumentStore:
    """Get the configured store, create if not exists"""
    global _store

    if _store is None:
        if STORE_BACKEND == "memory":
            _store = MemoryStore()
        elif STORE_BACKEND == "mysql":
            _store = MySQLStore()
        else:
            raise StoreError(f"Unknown store backend: {STORE_BACKEND}")
        logger.info(f"Using {STORE_BACKEND} document store")

    return _store
