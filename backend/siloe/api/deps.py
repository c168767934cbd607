"""Process-wide collaborators and the services built on them.

Remote clients are constructed once (lazily) and injected into services;
tests replace any of these through ``app.dependency_overrides``.
"""
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import sessionmaker

from ..config import get_settings
from ..core.errors import InputError
from ..db.base import SessionLocal
from ..integrations.revenuecat import RevenueCatProvider
from ..orchestration.llm import DecodingParams, GenerationClient, OpenAIModel
from ..orchestration.passage import PassageSelector
from ..orchestration.prompts import PromptBuilder
from ..rag.context import ContextAggregator
from ..rag.notes import SqlNotesStore
from ..rag.search import OpenSearchIndex
from ..services.mentor import MentorService
from ..services.study import StudyService
from ..services.subscription import EntitlementOracle, SubscriptionService
from ..services.usage import UsageCounter
from ..stores.device_storage import SqlDeviceStorage
from ..stores.studies import StudyStore

logger = logging.getLogger(__name__)

MAX_DEVICE_ID_LENGTH = 128


def get_session_factory() -> sessionmaker:
    return SessionLocal


@lru_cache()
def get_model() -> OpenAIModel:
    s = get_settings()
    logger.info("Model client: model=%s base_url=%s timeout=%ss", s.MODEL_NAME, s.OPENAI_BASE_URL or "<default>", s.MODEL_TIMEOUT_S)
    return OpenAIModel(api_key=s.OPENAI_API_KEY, model=s.MODEL_NAME, base_url=s.OPENAI_BASE_URL, timeout_s=s.MODEL_TIMEOUT_S)


@lru_cache()
def get_search_index() -> OpenSearchIndex:
    s = get_settings()
    logger.info("Search client: url=%s index=%s", s.OPENSEARCH_URL, s.BIBLICAL_CONTENT_INDEX)
    return OpenSearchIndex(
        base_url=s.OPENSEARCH_URL,
        index=s.BIBLICAL_CONTENT_INDEX,
        username=s.OPENSEARCH_USERNAME,
        password=s.OPENSEARCH_PASSWORD,
        timeout_s=s.SEARCH_TIMEOUT_S,
    )


@lru_cache()
def get_purchase_provider() -> RevenueCatProvider:
    s = get_settings()
    return RevenueCatProvider(api_key=s.REVENUECAT_API_KEY, base_url=s.REVENUECAT_BASE_URL, timeout_s=s.PURCHASE_TIMEOUT_S)


async def close_clients() -> None:
    for factory in (get_model, get_search_index, get_purchase_provider):
        if factory.cache_info().currsize:
            await factory().aclose()
            factory.cache_clear()


def get_generation_client(model=Depends(get_model)) -> GenerationClient:
    s = get_settings()
    return GenerationClient(
        model,
        answer_params=DecodingParams(
            max_tokens=s.ANSWER_MAX_TOKENS, temperature=s.ANSWER_TEMPERATURE, top_p=s.ANSWER_TOP_P,
        ),
        study_params=DecodingParams(
            max_tokens=s.STUDY_MAX_TOKENS, temperature=s.STUDY_TEMPERATURE, json_mode=True,
        ),
        timeout_s=s.MODEL_TIMEOUT_S,
    )


def get_prompt_builder() -> PromptBuilder:
    s = get_settings()
    return PromptBuilder(sanitize=s.SANITIZE_INPUT, max_input_chars=s.MAX_INPUT_CHARS)


def get_notes_store(session_factory: sessionmaker = Depends(get_session_factory)) -> SqlNotesStore:
    return SqlNotesStore(session_factory, timeout_s=get_settings().STORAGE_TIMEOUT_S)


def get_study_store(session_factory: sessionmaker = Depends(get_session_factory)) -> StudyStore:
    s = get_settings()
    return StudyStore(session_factory, timeout_s=s.STORAGE_TIMEOUT_S, ttl_days=s.STUDY_TTL_DAYS)


def get_mentor_service(
    notes: SqlNotesStore = Depends(get_notes_store),
    search: OpenSearchIndex = Depends(get_search_index),
    prompts: PromptBuilder = Depends(get_prompt_builder),
    generator: GenerationClient = Depends(get_generation_client),
) -> MentorService:
    s = get_settings()
    aggregator = ContextAggregator(
        notes,
        search,
        fields=s.SEARCH_FIELDS,
        notes_limit=s.NOTES_CONTEXT_LIMIT,
        search_limit=s.SEARCH_RESULT_LIMIT,
        timeout_s=max(s.STORAGE_TIMEOUT_S, s.SEARCH_TIMEOUT_S),
    )
    return MentorService(aggregator, prompts, generator)


def get_study_service(
    store: StudyStore = Depends(get_study_store),
    prompts: PromptBuilder = Depends(get_prompt_builder),
    generator: GenerationClient = Depends(get_generation_client),
) -> StudyService:
    s = get_settings()
    selector = PassageSelector(
        s.RECOMMENDED_PASSAGES,
        history=store,
        history_limit=s.PASSAGE_HISTORY_LIMIT,
        timeout_s=s.STORAGE_TIMEOUT_S,
    )
    return StudyService(selector, prompts, generator, store)


def get_device_id(x_device_id: Optional[str] = Header(default=None)) -> str:
    """The install identity the free-tier counter is keyed on (``X-Device-Id``)."""
    device_id = (x_device_id or "").strip()
    if not device_id:
        raise InputError("X-Device-Id header is required")
    if len(device_id) > MAX_DEVICE_ID_LENGTH:
        raise InputError("X-Device-Id header is too long")
    return device_id


def get_subscription_service(
    device_id: str = Depends(get_device_id),
    session_factory: sessionmaker = Depends(get_session_factory),
    provider: RevenueCatProvider = Depends(get_purchase_provider),
) -> SubscriptionService:
    s = get_settings()
    storage = SqlDeviceStorage(session_factory, device_id, timeout_s=s.STORAGE_TIMEOUT_S)
    counter = UsageCounter(storage, key=s.STUDY_COUNT_KEY)
    oracle = EntitlementOracle(provider, app_user_id=device_id, timeout_s=s.PURCHASE_TIMEOUT_S)
    return SubscriptionService(
        counter,
        oracle,
        free_limit=s.FREE_STUDY_LIMIT,
        fail_open=s.ENTITLEMENT_FAIL_OPEN,
    )
