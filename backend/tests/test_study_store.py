import time
from datetime import datetime, timedelta, timezone

import pytest

from backend.siloe.models.study import StudyArtifact
from backend.siloe.stores.studies import SECONDS_PER_DAY, StudyStore


def _artifact(reference="Psalm 23", created_at=None):
    kwargs = {}
    if created_at is not None:
        kwargs["created_at"] = created_at
    return StudyArtifact(
        scripture="The Lord is my shepherd.",
        reference=reference,
        observation="God provides.",
        application="Trust Him today.",
        prayer="Lead me, Lord.",
        **kwargs,
    )


@pytest.mark.anyio
async def test_save_then_get_round_trips(session_factory):
    store = StudyStore(session_factory)
    artifact = _artifact()
    stored = await store.save(artifact, user_id="user-1")

    fetched = await store.get(artifact.id)
    assert fetched == stored
    # Everything but owner and ttl is what we saved
    assert fetched.model_dump(exclude={"user_id", "ttl"}) == artifact.model_dump(exclude={"user_id", "ttl"})
    assert fetched.user_id == "user-1"


@pytest.mark.anyio
async def test_ttl_is_thirty_days_out(session_factory):
    before = int(time.time())
    stored = await StudyStore(session_factory).save(_artifact())
    after = int(time.time())
    assert before + 30 * SECONDS_PER_DAY <= stored.ttl <= after + 30 * SECONDS_PER_DAY
    assert stored.user_id is None


@pytest.mark.anyio
async def test_missing_study_is_none(session_factory):
    assert await StudyStore(session_factory).get("does-not-exist") is None


@pytest.mark.anyio
async def test_save_is_an_upsert(session_factory):
    store = StudyStore(session_factory)
    artifact = _artifact()
    await store.save(artifact)
    revised = artifact.model_copy(update={"prayer": "Amen."})
    await store.save(revised)
    fetched = await store.get(artifact.id)
    assert fetched.prayer == "Amen."


@pytest.mark.anyio
async def test_expired_study_reads_as_absent_and_is_purged(session_factory):
    store = StudyStore(session_factory, ttl_days=1)
    stored = await store.save(_artifact())
    assert await store.get(stored.id, now=stored.ttl - 1) is not None
    assert await store.get(stored.id, now=stored.ttl) is None

    assert await store.purge_expired(now=stored.ttl - 1) == 0
    assert await store.purge_expired(now=stored.ttl + 1) == 1
    assert await store.get(stored.id, now=stored.ttl - 1) is None


@pytest.mark.anyio
async def test_list_for_user_newest_first(session_factory):
    store = StudyStore(session_factory)
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    for i, ref in enumerate(["Psalm 23", "John 3:16-21", "Romans 8:28-39"]):
        await store.save(_artifact(ref, created_at=base + timedelta(days=i)), user_id="user-1")
    await store.save(_artifact("Matthew 5:1-12"), user_id="user-2")

    studies = await store.list_for_user("user-1")
    assert [s.reference for s in studies] == ["Romans 8:28-39", "John 3:16-21", "Psalm 23"]

    limited = await store.list_for_user("user-1", limit=1)
    assert [s.reference for s in limited] == ["Romans 8:28-39"]
