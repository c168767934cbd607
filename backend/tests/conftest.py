import asyncio
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

# Ensure repository root is on sys.path so 'import backend' works
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are cached on first use; pin the test environment before any import
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402

from backend.siloe.db.base import init_db, make_engine, make_session_factory  # noqa: E402
from backend.siloe.models.study import SearchHit, UserNote  # noqa: E402
from backend.siloe.models.subscription import CustomerInfo, Package  # noqa: E402


# Force pytest-anyio to use asyncio backend (avoid requiring 'trio')
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory():
    """A fresh in-memory database per test."""
    engine = make_engine("sqlite://")
    init_db(engine)
    try:
        yield make_session_factory(engine)
    finally:
        engine.dispose()


class FakeModel:
    """Returns ``reply`` (or raises ``error``) and records every call."""

    def __init__(self, reply: str = "", error: Optional[BaseException] = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    async def invoke(self, prompt, params):
        self.calls.append((prompt, params))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeSearch:
    def __init__(self, contents: Optional[List[str]] = None, error: Optional[BaseException] = None):
        self.contents = list(contents or [])
        self.error = error
        self.calls = []

    async def fuzzy_search(self, query_text, fields, limit):
        self.calls.append((query_text, list(fields), limit))
        if self.error is not None:
            raise self.error
        return [SearchHit(content=c) for c in self.contents]


class FakeNotes:
    def __init__(self, contents: Optional[List[str]] = None):
        self.contents = list(contents or [])
        self.calls = []

    async def query_by_owner(self, owner_id, study_id=None, limit=5):
        self.calls.append((owner_id, study_id, limit))
        return [
            UserNote(user_id=owner_id, study_id=study_id or "s-1", content=c, timestamp=datetime.now(timezone.utc))
            for c in self.contents
        ]


class FakePurchaseProvider:
    def __init__(self, active: Optional[List[str]] = None, error: Optional[BaseException] = None):
        self.active = list(active or [])
        self.error = error
        self.purchase_error: Optional[BaseException] = None
        self.purchase_grants: List[str] = ["premium_monthly"]
        self.packages: List[Package] = []
        self.calls = []

    async def get_customer_info(self, app_user_id):
        self.calls.append(("customer_info", app_user_id))
        if self.error is not None:
            raise self.error
        return CustomerInfo(app_user_id=app_user_id, active_subscriptions=self.active)

    async def purchase(self, app_user_id, package_id, fetch_token, platform="ios"):
        self.calls.append(("purchase", app_user_id, package_id, fetch_token, platform))
        if self.purchase_error is not None:
            raise self.purchase_error
        self.active = sorted(set(self.active) | set(self.purchase_grants))
        return CustomerInfo(app_user_id=app_user_id, active_subscriptions=self.active)

    async def restore(self, app_user_id):
        self.calls.append(("restore", app_user_id))
        if self.error is not None:
            raise self.error
        return CustomerInfo(app_user_id=app_user_id, active_subscriptions=self.active)

    async def get_offerings(self, app_user_id, platform="ios"):
        self.calls.append(("offerings", app_user_id, platform))
        if self.error is not None:
            raise self.error
        return self.packages


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def fake_search():
    return FakeSearch()


@pytest.fixture
def fake_notes():
    return FakeNotes()


@pytest.fixture
def fake_provider():
    return FakePurchaseProvider()
