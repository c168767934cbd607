#!/usr/bin/env python3
""" Create the Siloe tables and drop studies whose TTL has passed. """
import asyncio
import sys
from pathlib import Path

# Add the repository root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.siloe.config import get_settings  # noqa: E402
from backend.siloe.db.base import SessionLocal, engine, init_db  # noqa: E402
from backend.siloe.stores.studies import StudyStore  # noqa: E402

if __name__ == "__main__":
    print(f"Initializing database at {engine.url}...")
    init_db(engine)
    store = StudyStore(SessionLocal, timeout_s=get_settings().STORAGE_TIMEOUT_S)
    purged = asyncio.run(store.purge_expired())
    print(f"Database initialization complete! ({purged} expired studies purged)")
