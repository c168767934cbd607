from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "dev_secret_key_change_in_production"


class Settings(BaseSettings):
    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    PROJECT_NAME: str = "Siloe"
    VERSION: str = "0.1.0"
    API_PREFIX: str = "/api"

    # Security (identity comes from an upstream-issued bearer token)
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:8081",
        "http://127.0.0.1:8081",
        "http://localhost:19006",
    ]
    # Allow any localhost/127.0.0.1 port (Expo dev server, simulators)
    CORS_ORIGIN_REGEX: str = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    # Database (studies, journal notes, per-device storage)
    DATABASE_URL: str = "sqlite:///./siloe.db"

    # Generative model
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: Optional[str] = None
    MODEL_NAME: str = "gpt-4o-mini"
    ANSWER_MAX_TOKENS: int = 1000
    ANSWER_TEMPERATURE: float = 0.7
    ANSWER_TOP_P: float = 0.9
    STUDY_MAX_TOKENS: int = 2000
    STUDY_TEMPERATURE: float = 0.7

    # Search index
    OPENSEARCH_URL: str = "http://localhost:9200"
    OPENSEARCH_USERNAME: str = ""
    OPENSEARCH_PASSWORD: str = ""
    BIBLICAL_CONTENT_INDEX: str = "biblical-content"
    SEARCH_FIELDS: List[str] = ["content", "commentary"]
    SEARCH_RESULT_LIMIT: int = 3
    NOTES_CONTEXT_LIMIT: int = 5

    # Upper bounds for remote calls, in seconds
    MODEL_TIMEOUT_S: float = 30.0
    STORAGE_TIMEOUT_S: float = 5.0
    SEARCH_TIMEOUT_S: float = 5.0
    PURCHASE_TIMEOUT_S: float = 10.0

    # Studies
    STUDY_TTL_DAYS: int = 30
    PASSAGE_HISTORY_LIMIT: int = 10
    RECOMMENDED_PASSAGES: List[str] = [
        "John 3:16-21",
        "Psalm 23",
        "Philippians 4:4-9",
        "Romans 8:28-39",
        "Matthew 5:1-12",
    ]

    # Free tier and entitlements
    FREE_STUDY_LIMIT: int = 3
    STUDY_COUNT_KEY: str = "@study_count"
    ENTITLEMENT_FAIL_OPEN: bool = False
    REVENUECAT_API_KEY: str = ""
    REVENUECAT_BASE_URL: str = "https://api.revenuecat.com/v1"

    # User input guards
    SANITIZE_INPUT: bool = True
    MAX_INPUT_CHARS: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()

    if settings.ENVIRONMENT == "production":
        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY is required in production environment")
        if settings.SECRET_KEY == DEFAULT_SECRET_KEY:
            raise ValueError("SECRET_KEY must be changed in production environment")

    return settings
