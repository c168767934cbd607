from typing import List, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...deps import get_subscription_service
from ....models.subscription import GateStatus, Package, PurchaseOutcome, RestoreOutcome
from ....services.subscription import SubscriptionService

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])

Platform = Literal["ios", "android"]


class PurchaseRequest(BaseModel):
    package_id: str = Field(min_length=1)
    fetch_token: str = Field(min_length=1)
    platform: Platform = "ios"


@router.get("/status", response_model=GateStatus)
async def subscription_status(subscriptions: SubscriptionService = Depends(get_subscription_service)):
    return await subscriptions.status()


@router.get("/offerings", response_model=List[Package])
async def list_offerings(
    platform: Platform = "ios",
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    return await subscriptions.get_offerings(platform)


@router.post("/purchase", response_model=PurchaseOutcome)
async def purchase(
    body: PurchaseRequest,
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    """
    Record a store purchase. ``successful`` is true only once a subscription is active.
    """
    return await subscriptions.purchase(body.package_id, body.fetch_token, body.platform)


@router.post("/restore", response_model=RestoreOutcome)
async def restore(subscriptions: SubscriptionService = Depends(get_subscription_service)):
    return await subscriptions.restore()
