"""Durable key-value storage scoped to one device install.

Values are strings, as on the device. ``compare_and_set`` is the only write
primitive callers need for counters; ``set`` is an unconditional overwrite.
"""
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.sql_models import DeviceStorageEntry
from .base import SqlStore


class DeviceStorage(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def compare_and_set(self, key: str, expected: Optional[str], new: str) -> bool: ...


class InMemoryDeviceStorage:
    """Process-local storage, used by tests and single-process tooling."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    async def compare_and_set(self, key: str, expected: Optional[str], new: str) -> bool:
        with self._lock:
            if self._data.get(key) != expected:
                return False
            self._data[key] = new
            return True


class SqlDeviceStorage(SqlStore):
    """Device storage backed by the ``device_storage`` table."""

    name = "device storage"

    def __init__(self, session_factory: Callable[[], Session], device_id: str, timeout_s: float = 5.0):
        super().__init__(session_factory, timeout_s)
        self.device_id = device_id

    def _row(self, db: Session, key: str) -> Optional[DeviceStorageEntry]:
        return db.get(DeviceStorageEntry, (self.device_id, key))

    async def get(self, key: str) -> Optional[str]:
        def fn(db: Session) -> Optional[str]:
            row = self._row(db, key)
            return row.value if row is not None else None

        return await self._run("read", fn)

    async def set(self, key: str, value: str) -> None:
        def fn(db: Session) -> None:
            db.merge(DeviceStorageEntry(
                device_id=self.device_id,
                key=key,
                value=value,
                updated_at=datetime.now(timezone.utc),
            ))
            db.commit()

        await self._run("write", fn)

    async def compare_and_set(self, key: str, expected: Optional[str], new: str) -> bool:
        def fn(db: Session) -> bool:
            now = datetime.now(timezone.utc)
            if expected is None:
                # Absent key: the primary key makes a racing insert fail
                db.add(DeviceStorageEntry(device_id=self.device_id, key=key, value=new, updated_at=now))
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    return False
                return True
            updated = (
                db.query(DeviceStorageEntry)
                .filter(
                    DeviceStorageEntry.device_id == self.device_id,
                    DeviceStorageEntry.key == key,
                    DeviceStorageEntry.value == expected,
                )
                .update({"value": new, "updated_at": now}, synchronize_session=False)
            )
            db.commit()
            return updated == 1

        return await self._run("compare-and-set", fn)
