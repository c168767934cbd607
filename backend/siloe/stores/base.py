import asyncio
import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import StorageError
from ..core.timeouts import bounded

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlStore:
    """Runs blocking SQLAlchemy work off the event loop, bounded by a timeout.

    Subclasses pass a ``fn(session)`` to ``_run``; driver errors come back
    as StorageError and overruns as ProviderTimeout.
    """

    name = "store"

    def __init__(self, session_factory: Callable[[], Session], timeout_s: float = 5.0):
        self.session_factory = session_factory
        self.timeout_s = timeout_s

    async def _run(self, what: str, fn: Callable[[Session], T]) -> T:
        label = f"{self.name} {what}"

        def work() -> T:
            db = self.session_factory()
            try:
                return fn(db)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("%s failed: %s", label, e)
                raise StorageError(f"{label} failed", cause=e) from e
            finally:
                db.close()

        return await bounded(asyncio.to_thread(work), self.timeout_s, label)
