"""
RevenueCat REST client - the purchase provider behind entitlement checks.

Provides:
- Customer info (active subscription product ids)
- Receipt posting for new purchases
- Restore (fresh re-read of the subscriber)
- Current offering packages
"""
import logging
from urllib.parse import quote
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..core.errors import EntitlementCheckError, ProviderTimeout
from ..models.subscription import CustomerInfo, Package

logger = logging.getLogger(__name__)


class PurchaseProvider(Protocol):
    async def get_customer_info(self, app_user_id: str) -> CustomerInfo: ...

    async def purchase(self, app_user_id: str, package_id: str, fetch_token: str, platform: str = "ios") -> CustomerInfo: ...

    async def restore(self, app_user_id: str) -> CustomerInfo: ...

    async def get_offerings(self, app_user_id: str, platform: str = "ios") -> List[Package]: ...


def _path_id(app_user_id: str) -> str:
    # Device ids come from a client header; keep them to a single path segment
    return quote(app_user_id, safe="")


def _parse_expiry(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def active_subscriptions(subscriber: Dict[str, Any], now: Optional[datetime] = None) -> List[str]:
    """Product ids whose subscription has not expired.

    A missing ``expires_date`` means a non-expiring (lifetime) purchase.
    """
    now = now or datetime.now(timezone.utc)
    active: List[str] = []
    for product_id, sub in (subscriber.get("subscriptions") or {}).items():
        expires = _parse_expiry((sub or {}).get("expires_date"))
        if expires is None or expires > now:
            active.append(product_id)
    return sorted(active)


class RevenueCatProvider:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.revenuecat.com/v1",
        timeout_s: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            logger.warning("REVENUECAT_API_KEY is not set; entitlement checks will fail")
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("RevenueCat %s %s timed out: %s", method, path, e)
            raise ProviderTimeout(f"Purchase provider timed out on {method} {path}", cause=e) from e
        except httpx.HTTPError as e:
            logger.error("RevenueCat %s %s failed: %s", method, path, e)
            raise EntitlementCheckError("Purchase provider unreachable", cause=e) from e

        if response.status_code >= 400:
            logger.error(
                "RevenueCat error: %s - %s", response.status_code, response.text[:500]
            )
            raise EntitlementCheckError(f"Purchase provider returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise EntitlementCheckError("Purchase provider returned invalid JSON", cause=e) from e

    def _customer_info(self, app_user_id: str, data: Dict[str, Any]) -> CustomerInfo:
        subscriber = data.get("subscriber") or {}
        try:
            active = active_subscriptions(subscriber)
        except (ValueError, TypeError, AttributeError) as e:
            logger.error("RevenueCat subscriber for %s is malformed: %s", app_user_id, e)
            raise EntitlementCheckError("Purchase provider returned a malformed subscriber", cause=e) from e
        return CustomerInfo(app_user_id=app_user_id, active_subscriptions=active)

    async def get_customer_info(self, app_user_id: str) -> CustomerInfo:
        data = await self._request("GET", f"/subscribers/{_path_id(app_user_id)}")
        return self._customer_info(app_user_id, data)

    async def purchase(self, app_user_id: str, package_id: str, fetch_token: str, platform: str = "ios") -> CustomerInfo:
        """Record a store receipt for ``package_id`` and return the resulting state."""
        data = await self._request(
            "POST",
            "/receipts",
            headers={"X-Platform": platform},
            json={
                "app_user_id": app_user_id,
                "fetch_token": fetch_token,
                "attributes": {"package_identifier": {"value": package_id}},
            },
        )
        return self._customer_info(app_user_id, data)

    async def restore(self, app_user_id: str) -> CustomerInfo:
        # Receipts are already on the provider; restoring is a fresh read
        return await self.get_customer_info(app_user_id)

    async def get_offerings(self, app_user_id: str, platform: str = "ios") -> List[Package]:
        data = await self._request(
            "GET", f"/subscribers/{_path_id(app_user_id)}/offerings", headers={"X-Platform": platform}
        )
        current_id = data.get("current_offering_id")
        if not current_id:
            return []
        for offering in data.get("offerings") or []:
            if offering.get("identifier") != current_id:
                continue
            return [
                Package(
                    identifier=p.get("identifier", ""),
                    product_identifier=p.get("platform_product_identifier", ""),
                    title=p.get("title"),
                    price_string=p.get("price_string"),
                )
                for p in offering.get("packages") or []
            ]
        return []
