# Shared pytest setup: run the app against the in-memory document store

import os
import sys

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("CALENDAR_TIMEZONE", "Europe/Sofia")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'app'))
sys.path.insert(0, os.path.dirname(__file__))
