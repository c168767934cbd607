from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ...deps import get_mentor_service
from ....core.security import get_optional_user_id
from ....services.mentor import MentorService

router = APIRouter(tags=["mentor"])


class AnswerQuestionRequest(BaseModel):
    # Optional here so a missing question is reported as "Question is required"
    question: Optional[str] = None
    study_id: Optional[str] = Field(default=None, alias="studyId")
    context: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class AnswerQuestionResponse(BaseModel):
    answer: str


@router.post("/answer-question", response_model=AnswerQuestionResponse)
async def answer_question(
    body: AnswerQuestionRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    mentor: MentorService = Depends(get_mentor_service),
):
    """
    Answer a Bible question, grounded in the user's notes and the content index.
    """
    answer = await mentor.answer(
        body.question or "",
        user_id=user_id,
        study_id=body.study_id,
        client_context=body.context,
    )
    return AnswerQuestionResponse(answer=answer)
