from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from ...deps import get_notes_store
from ....core.security import get_current_user_id
from ....models.study import UserNote
from ....rag.notes import SqlNotesStore

router = APIRouter(prefix="/journal", tags=["journal"])

JOURNAL_PAGE_LIMIT = 50


class JournalEntryCreate(BaseModel):
    study_id: str = Field(min_length=1, alias="studyId")
    content: str = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


@router.post("", response_model=UserNote, status_code=status.HTTP_201_CREATED)
async def create_entry(
    body: JournalEntryCreate,
    user_id: str = Depends(get_current_user_id),
    notes: SqlNotesStore = Depends(get_notes_store),
):
    return await notes.add(user_id, body.study_id, body.content)


@router.get("", response_model=List[UserNote])
async def list_entries(
    study_id: Optional[str] = None,
    limit: int = 20,
    user_id: str = Depends(get_current_user_id),
    notes: SqlNotesStore = Depends(get_notes_store),
):
    """
    List the caller's notes, newest first, optionally for one study.
    """
    limit = max(1, min(limit, JOURNAL_PAGE_LIMIT))
    return await notes.query_by_owner(user_id, study_id, limit)
