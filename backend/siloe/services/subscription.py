import asyncio
import logging
from typing import List, Tuple

from ..core.errors import EntitlementCheckError, ProviderError
from ..core.timeouts import bounded
from ..integrations.revenuecat import PurchaseProvider
from ..models.subscription import (
    CustomerInfo,
    GateStatus,
    GateVerdict,
    Package,
    PurchaseOutcome,
    RestoreOutcome,
)
from ..policies.gate import FREE_STUDY_LIMIT, needs_subscription
from .usage import UsageCounter

logger = logging.getLogger(__name__)


class EntitlementOracle:
    """Asks the purchase provider, every time, whether anything is subscribed.

    Never caches and never swallows errors: a failed check raises
    EntitlementCheckError (or ProviderTimeout) and the caller picks a policy.
    """

    def __init__(self, provider: PurchaseProvider, app_user_id: str, timeout_s: float = 10.0):
        self.provider = provider
        self.app_user_id = app_user_id
        self.timeout_s = timeout_s

    async def customer_info(self) -> CustomerInfo:
        try:
            return await bounded(
                self.provider.get_customer_info(self.app_user_id),
                self.timeout_s,
                "entitlement check",
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Entitlement check failed for %s: %s", self.app_user_id, e)
            raise EntitlementCheckError("Entitlement check failed", cause=e) from e

    async def has_active_subscription(self) -> bool:
        info = await self.customer_info()
        return info.has_active_subscription


class SubscriptionService:
    """Free-tier gate and subscription actions for one device install."""

    def __init__(
        self,
        counter: UsageCounter,
        oracle: EntitlementOracle,
        free_limit: int = FREE_STUDY_LIMIT,
        fail_open: bool = False,
    ):
        self.counter = counter
        self.oracle = oracle
        self.provider = oracle.provider
        self.app_user_id = oracle.app_user_id
        self.free_limit = free_limit
        self.fail_open = fail_open

    async def _entitlement(self) -> Tuple[bool, bool]:
        """Return (has_active_subscription, check_failed) under the configured policy."""
        try:
            return await self.oracle.has_active_subscription(), False
        except ProviderError as e:
            logger.warning(
                "Entitlement check failed for %s; failing %s: %s",
                self.app_user_id, "open" if self.fail_open else "closed", e,
            )
            return self.fail_open, True

    async def status(self) -> GateStatus:
        study_count, (active, failed) = await asyncio.gather(
            self.counter.get(),
            self._entitlement(),
        )
        return GateStatus(
            study_count=study_count,
            free_limit=self.free_limit,
            has_active_subscription=active,
            needs_subscription=needs_subscription(study_count, active, self.free_limit),
            entitlement_check_failed=failed,
        )

    async def needs_subscription(self) -> bool:
        return (await self.status()).needs_subscription

    async def start_study(self) -> GateVerdict:
        """Check the gate, then count the study only if it was allowed."""
        current = await self.status()
        if current.needs_subscription:
            logger.info(
                "Study denied for %s: %d studies used, no active subscription",
                self.app_user_id, current.study_count,
            )
            return GateVerdict(
                allowed=False,
                study_count=current.study_count,
                entitlement_check_failed=current.entitlement_check_failed,
            )
        new_count = await self.counter.increment()
        return GateVerdict(
            allowed=True,
            study_count=new_count,
            entitlement_check_failed=current.entitlement_check_failed,
        )

    async def is_subscribed(self) -> bool:
        return await self.oracle.has_active_subscription()

    async def get_offerings(self, platform: str = "ios") -> List[Package]:
        return await bounded(
            self.provider.get_offerings(self.app_user_id, platform),
            self.oracle.timeout_s,
            "offerings lookup",
        )

    async def purchase(self, package_id: str, fetch_token: str, platform: str = "ios") -> PurchaseOutcome:
        """Record a purchase.

        If the provider fails, report ``successful=False`` with a fresh read of
        the customer; if that read fails too, the error propagates.
        """
        try:
            info = await bounded(
                self.provider.purchase(self.app_user_id, package_id, fetch_token, platform),
                self.oracle.timeout_s,
                "purchase",
            )
        except ProviderError as e:
            logger.error("Purchase of %s failed for %s: %s", package_id, self.app_user_id, e)
            info = await self.oracle.customer_info()
            return PurchaseOutcome(successful=False, active_subscriptions=info.active_subscriptions)
        logger.info("Purchase of %s for %s -> active=%s", package_id, self.app_user_id, info.active_subscriptions)
        return PurchaseOutcome(
            successful=info.has_active_subscription,
            active_subscriptions=info.active_subscriptions,
        )

    async def restore(self) -> RestoreOutcome:
        info = await bounded(
            self.provider.restore(self.app_user_id),
            self.oracle.timeout_s,
            "restore",
        )
        return RestoreOutcome(
            restored=info.has_active_subscription,
            active_subscriptions=info.active_subscriptions,
        )
