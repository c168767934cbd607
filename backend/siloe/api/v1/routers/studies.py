from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ...deps import get_study_service, get_subscription_service
from ....core.security import get_optional_user_id
from ....models.study import StudyArtifact
from ....models.subscription import GateVerdict
from ....services.study import StudyService
from ....services.subscription import SubscriptionService

router = APIRouter(tags=["studies"])


class GenerateStudyRequest(BaseModel):
    passage: Optional[str] = None
    reference: Optional[str] = None


class StudyResponse(BaseModel):
    study: StudyArtifact


@router.post("/generate-study", response_model=StudyResponse)
async def generate_study(
    body: GenerateStudyRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    studies: StudyService = Depends(get_study_service),
):
    """
    Generate and save a SOAP study.

    With no passage, one is recommended for the user.
    """
    study = await studies.generate(passage=body.passage, reference=body.reference, user_id=user_id)
    return StudyResponse(study=study)


@router.post("/studies/start", response_model=GateVerdict)
async def start_study(subscriptions: SubscriptionService = Depends(get_subscription_service)):
    """
    Gate a study start: check the free tier and subscription, then count the
    study only if it is allowed.
    """
    return await subscriptions.start_study()


@router.get("/studies/{study_id}", response_model=StudyResponse)
async def get_study(study_id: str, studies: StudyService = Depends(get_study_service)):
    study = await studies.get(study_id)
    if study is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Study not found")
    return StudyResponse(study=study)
