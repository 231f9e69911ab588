# Shared utility functions for unit tests

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'app'))
from store import MemoryStore, StoreError
from series_store import SeriesStore
from schemas import BaseEventData


class FailingStore(MemoryStore):
    """Memory store whose writes and removals fail for matching paths"""

    def __init__(self, fails_on):
        super().__init__()
        self.fails_on = fails_on

    def set(self, path, value):
        if self.fails_on(path):
            raise StoreError(f"Simulated failure writing '{path}'")
        super().set(path, value)

    def remove(self, path):
        if self.fails_on(path):
            raise StoreError(f"Simulated failure removing '{path}'")
        super().remove(path)


def new_series_store(store=None):
    """Create a series store over a fresh memory store"""
    return SeriesStore(store if store is not None else MemoryStore())


def base_event(**overrides):
    """Create base event data like the series form submits it"""
    data = {
        "title": "Standup",
        "description": "Daily sync",
        "location": "Room 4",
        "is_public": True,
        "participants": ["uid-1"],
        "creator_id": "uid-1",
        "handle": "alice",
        "category": "work",
    }
    data.update(overrides)
    return BaseEventData(**data)
