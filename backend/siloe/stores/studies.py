import logging
import time
from datetime import timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.sql_models import Study
from ..models.study import StudyArtifact
from .base import SqlStore

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _to_artifact(row: Study) -> StudyArtifact:
    created_at = row.created_at
    # SQLite drops tzinfo on the way back
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return StudyArtifact(
        id=row.id,
        scripture=row.scripture,
        reference=row.reference,
        observation=row.observation,
        application=row.application,
        prayer=row.prayer,
        created_at=created_at,
        user_id=row.user_id,
        ttl=row.ttl,
    )


class StudyStore(SqlStore):
    """Persists generated studies with a time-to-live.

    Writes are keyed by the study id and are unconditional upserts, so
    retrying a save is safe.
    """

    name = "study store"

    def __init__(self, session_factory, timeout_s: float = 5.0, ttl_days: int = 30):
        super().__init__(session_factory, timeout_s)
        self.ttl_days = ttl_days

    async def save(self, artifact: StudyArtifact, user_id: Optional[str] = None) -> StudyArtifact:
        """Save a study, stamping its owner and an expiry ``ttl_days`` ahead.

        Returns the artifact as stored (with ``user_id`` and ``ttl`` set).
        """
        stored = artifact.model_copy(update={
            "user_id": user_id,
            "ttl": int(time.time()) + self.ttl_days * SECONDS_PER_DAY,
        })

        def fn(db: Session) -> None:
            db.merge(Study(
                id=stored.id,
                user_id=stored.user_id,
                scripture=stored.scripture,
                reference=stored.reference,
                observation=stored.observation,
                application=stored.application,
                prayer=stored.prayer,
                created_at=stored.created_at,
                ttl=stored.ttl,
            ))
            db.commit()

        await self._run("save", fn)
        logger.info("Saved study id=%s reference=%s user=%s", stored.id, stored.reference, user_id or "<anonymous>")
        return stored

    async def get(self, study_id: str, now: Optional[int] = None) -> Optional[StudyArtifact]:
        """Fetch a study by id; expired studies read as absent."""
        now = int(time.time()) if now is None else now

        def fn(db: Session) -> Optional[StudyArtifact]:
            row = db.get(Study, study_id)
            if row is None or row.ttl <= now:
                return None
            return _to_artifact(row)

        return await self._run("get", fn)

    async def list_for_user(self, user_id: str, limit: int = 10) -> List[StudyArtifact]:
        """Return the owner's unexpired studies, newest first."""
        now = int(time.time())

        def fn(db: Session) -> List[StudyArtifact]:
            rows = (
                db.query(Study)
                .filter(Study.user_id == user_id, Study.ttl > now)
                .order_by(Study.created_at.desc())
                .limit(limit)
                .all()
            )
            return [_to_artifact(r) for r in rows]

        return await self._run("history", fn)

    async def purge_expired(self, now: Optional[int] = None) -> int:
        now = int(time.time()) if now is None else now

        def fn(db: Session) -> int:
            deleted = db.query(Study).filter(Study.ttl <= now).delete(synchronize_session=False)
            db.commit()
            return deleted

        deleted = await self._run("purge", fn)
        if deleted:
            logger.info("Purged %d expired studies", deleted)
        return deleted
