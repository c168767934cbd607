import random
import tracemalloc

import pytest

from backend.siloe.models.study import StudyArtifact
from backend.siloe.orchestration.passage import DEFAULT_PASSAGES, PassageSelector


class CountingRandom(random.Random):
    def __init__(self, seed=None):
        super().__init__(seed)
        self.choices = 0

    def choice(self, seq):
        self.choices += 1
        return super().choice(seq)


class FakeHistory:
    def __init__(self, references):
        self.references = references
        self.calls = []

    async def list_for_user(self, user_id, limit=10):
        self.calls.append((user_id, limit))
        return [
            StudyArtifact(
                scripture="...", reference=r, observation="o", application="a", prayer="p", user_id=user_id,
            )
            for r in self.references
        ]


@pytest.mark.anyio
async def test_explicit_passage_never_draws_randomly():
    rng = CountingRandom(1)
    history = FakeHistory(["John 3:16-21"])
    selector = PassageSelector(history=history, rng=rng)
    assert await selector.select("john 3:16-21", user_id="user-1") == "John 3:16-21"
    assert rng.choices == 0
    assert history.calls == []


@pytest.mark.anyio
async def test_blank_passage_falls_back_to_recommendation():
    rng = CountingRandom(1)
    selector = PassageSelector(rng=rng)
    chosen = await selector.select("   ")
    assert chosen in DEFAULT_PASSAGES
    assert rng.choices == 1


@pytest.mark.anyio
async def test_recommendation_is_deterministic_with_seed():
    a = await PassageSelector(rng=random.Random(42)).recommend()
    b = await PassageSelector(rng=random.Random(42)).recommend()
    assert a == b
    assert a in DEFAULT_PASSAGES


@pytest.mark.anyio
async def test_recent_passages_are_skipped():
    studied = DEFAULT_PASSAGES[:-1]
    selector = PassageSelector(history=FakeHistory(studied), rng=random.Random(7))
    for _ in range(5):
        assert await selector.recommend("user-1") == DEFAULT_PASSAGES[-1]


@pytest.mark.anyio
async def test_everything_studied_falls_back_to_full_rotation():
    selector = PassageSelector(history=FakeHistory(DEFAULT_PASSAGES), rng=random.Random(3))
    assert await selector.recommend("user-1") in DEFAULT_PASSAGES


@pytest.mark.anyio
async def test_anonymous_recommendation_skips_history():
    history = FakeHistory(DEFAULT_PASSAGES)
    await PassageSelector(history=history, rng=random.Random(0)).recommend()
    assert history.calls == []


def test_empty_rotation_is_rejected():
    with pytest.raises(ValueError):
        PassageSelector(passages=[])


@pytest.mark.anyio
async def test_huge_explicit_range_passes_through_cheaply():
    tracemalloc.start()
    try:
        chosen = await PassageSelector().select("John 1:1-5000000")
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()
    assert chosen == "John 1:1-5000000"
    assert peak < 1_000_000
