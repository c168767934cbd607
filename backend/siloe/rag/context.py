from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from ..core.timeouts import bounded
from ..safety.guard import is_valid_biblical_content
from .notes import NotesStore
from .search import SearchIndex

logger = logging.getLogger(__name__)

SEPARATOR = "\n\n"


class ContextAggregator:
    """Builds the grounding text for a question.

    Personal notes come first (only when the asker is known), then search
    hits; each source is capped on its own. Both reads run concurrently.
    A search failure propagates: there is no partial-context fallback.
    """

    def __init__(
        self,
        notes: NotesStore,
        search: SearchIndex,
        fields: Sequence[str] = ("content", "commentary"),
        notes_limit: int = 5,
        search_limit: int = 3,
        timeout_s: float = 5.0,
    ):
        self.notes = notes
        self.search = search
        self.fields = list(fields)
        self.notes_limit = notes_limit
        self.search_limit = search_limit
        self.timeout_s = timeout_s

    async def _note_fragments(self, user_id: str | None, study_id: str | None) -> List[str]:
        if not user_id:
            return []
        notes = await bounded(
            self.notes.query_by_owner(user_id, study_id, self.notes_limit),
            self.timeout_s,
            "notes query",
        )
        return [n.content for n in notes[: self.notes_limit]]

    async def _search_fragments(self, question: str) -> List[str]:
        hits = await bounded(
            self.search.fuzzy_search(question, self.fields, self.search_limit),
            self.timeout_s,
            "context search",
        )
        return [h.content for h in hits[: self.search_limit]]

    async def gather(self, question: str, user_id: Optional[str] = None, study_id: Optional[str] = None) -> str:
        note_parts, search_parts = await asyncio.gather(
            self._note_fragments(user_id, study_id),
            self._search_fragments(question),
        )
        fragments = [f for f in note_parts + search_parts if is_valid_biblical_content(f)]
        logger.debug(
            "Context for user=%s study=%s: %d notes, %d search hits",
            user_id, study_id, len(note_parts), len(search_parts),
        )
        return SEPARATOR.join(fragments)
