from typing import List, Optional

from pydantic import BaseModel, Field


class CustomerInfo(BaseModel):
    """Subscription state as reported by the purchase provider."""

    app_user_id: str
    active_subscriptions: List[str] = Field(default_factory=list)

    @property
    def has_active_subscription(self) -> bool:
        return len(self.active_subscriptions) > 0


class Package(BaseModel):
    identifier: str
    product_identifier: str
    title: Optional[str] = None
    price_string: Optional[str] = None


class PurchaseOutcome(BaseModel):
    successful: bool
    active_subscriptions: List[str] = Field(default_factory=list)


class RestoreOutcome(BaseModel):
    restored: bool
    active_subscriptions: List[str] = Field(default_factory=list)


class GateVerdict(BaseModel):
    """Result of one gate check. Recomputed on every check, never persisted."""

    allowed: bool
    study_count: int
    entitlement_check_failed: bool = False


class GateStatus(BaseModel):
    study_count: int
    free_limit: int
    has_active_subscription: bool
    needs_subscription: bool
    entitlement_check_failed: bool = False
