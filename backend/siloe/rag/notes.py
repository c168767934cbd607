from datetime import datetime, timezone
from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from ..models.sql_models import JournalEntry
from ..models.study import UserNote
from ..stores.base import SqlStore


class NotesStore(Protocol):
    async def query_by_owner(self, owner_id: str, study_id: Optional[str] = None, limit: int = 5) -> List[UserNote]: ...


def _to_note(row: JournalEntry) -> UserNote:
    ts = row.timestamp
    if ts is not None and ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return UserNote(id=row.id, user_id=row.user_id, study_id=row.study_id, content=row.content, timestamp=ts)


class SqlNotesStore(SqlStore):
    """Journal notes in the ``journal_entries`` table."""

    name = "notes store"

    async def query_by_owner(self, owner_id: str, study_id: Optional[str] = None, limit: int = 5) -> List[UserNote]:
        """Most-recent-first notes for ``owner_id``, optionally for one study."""

        def fn(db: Session) -> List[UserNote]:
            q = db.query(JournalEntry).filter(JournalEntry.user_id == owner_id)
            if study_id:
                q = q.filter(JournalEntry.study_id == study_id)
            rows = q.order_by(JournalEntry.timestamp.desc()).limit(limit).all()
            return [_to_note(r) for r in rows]

        return await self._run("query", fn)

    async def add(self, owner_id: str, study_id: str, content: str) -> UserNote:
        def fn(db: Session) -> UserNote:
            row = JournalEntry(
                user_id=owner_id,
                study_id=study_id,
                content=content,
                timestamp=datetime.now(timezone.utc),
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_note(row)

        return await self._run("add", fn)
