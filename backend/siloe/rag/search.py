import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from ..core.errors import ProviderTimeout, SearchError
from ..models.study import SearchHit

logger = logging.getLogger(__name__)


class SearchIndex(Protocol):
    async def fuzzy_search(self, query_text: str, fields: Sequence[str], limit: int) -> List[SearchHit]: ...


def build_fuzzy_query(query_text: str, fields: Sequence[str], limit: int) -> Dict[str, Any]:
    """Multi-field match with automatic fuzziness; ranking is left to the index."""
    return {
        "query": {
            "multi_match": {
                "query": query_text,
                "fields": list(fields),
                "fuzziness": "AUTO",
            },
        },
        "size": limit,
    }


class OpenSearchIndex:
    """Queries one OpenSearch index of biblical content and commentary over REST."""

    def __init__(
        self,
        base_url: str,
        index: str,
        username: str = "",
        password: str = "",
        timeout_s: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.index = index
        auth = httpx.BasicAuth(username, password) if username else None
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            auth=auth,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fuzzy_search(self, query_text: str, fields: Sequence[str], limit: int) -> List[SearchHit]:
        body = build_fuzzy_query(query_text, fields, limit)
        try:
            response = await self._client.post(f"/{self.index}/_search", json=body)
        except httpx.TimeoutException as e:
            logger.error("Search on %s timed out: %s", self.index, e)
            raise ProviderTimeout(f"Search on {self.index} timed out", cause=e) from e
        except httpx.HTTPError as e:
            logger.error("Search on %s failed: %s", self.index, e)
            raise SearchError(f"Search on {self.index} failed", cause=e) from e

        if response.status_code != 200:
            logger.error("Search error: %s - %s", response.status_code, response.text[:500])
            raise SearchError(f"Search on {self.index} returned HTTP {response.status_code}")

        try:
            hits = response.json().get("hits", {}).get("hits", [])
        except ValueError as e:
            raise SearchError("Search returned invalid JSON", cause=e) from e

        out: List[SearchHit] = []
        for hit in hits[:limit]:
            source = hit.get("_source") or {}
            content = source.get("content")
            if isinstance(content, str):
                out.append(SearchHit(content=content, score=hit.get("_score")))
        return out
