import logging
import random
from typing import List, Optional, Protocol, Sequence

from ..core.timeouts import bounded
from ..models.study import StudyArtifact
from .scripture import format_reference

logger = logging.getLogger(__name__)

DEFAULT_PASSAGES = [
    "John 3:16-21",
    "Psalm 23",
    "Philippians 4:4-9",
    "Romans 8:28-39",
    "Matthew 5:1-12",
]


class StudyHistory(Protocol):
    async def list_for_user(self, user_id: str, limit: int = 10) -> List[StudyArtifact]: ...


class PassageSelector:
    """Picks the passage a study is generated for.

    An explicit passage always wins. Otherwise one of a fixed rotation is
    drawn at random; with a known user, passages they studied recently are
    skipped while any alternative remains.
    """

    def __init__(
        self,
        passages: Sequence[str] = DEFAULT_PASSAGES,
        history: Optional[StudyHistory] = None,
        history_limit: int = 10,
        rng: Optional[random.Random] = None,
        timeout_s: float = 5.0,
    ):
        if not passages:
            raise ValueError("PassageSelector needs at least one passage")
        self.passages = list(passages)
        self.history = history
        self.history_limit = history_limit
        self.rng = rng or random.Random()
        self.timeout_s = timeout_s

    async def _recent_references(self, user_id: str) -> List[str]:
        if self.history is None:
            return []
        studies = await bounded(
            self.history.list_for_user(user_id, self.history_limit),
            self.timeout_s,
            "study history",
        )
        return [format_reference(s.reference) for s in studies]

    async def recommend(self, user_id: Optional[str] = None) -> str:
        candidates = self.passages
        if user_id:
            recent = set(await self._recent_references(user_id))
            fresh = [p for p in candidates if format_reference(p) not in recent]
            if fresh:
                candidates = fresh
        choice = self.rng.choice(candidates)
        logger.info("Recommended passage %s for user=%s", choice, user_id or "<anonymous>")
        return choice

    async def select(self, passage: Optional[str] = None, user_id: Optional[str] = None) -> str:
        if passage and passage.strip():
            return format_reference(passage)
        return await self.recommend(user_id)
