import pytest

from conftest import FakeNotes, FakeSearch

from backend.siloe.core.errors import SearchError
from backend.siloe.rag.context import ContextAggregator


@pytest.mark.anyio
async def test_anonymous_question_uses_search_only():
    notes = FakeNotes(["my private note"])
    search = FakeSearch(["Hit one.", "Hit two."])
    ctx = await ContextAggregator(notes, search).gather("What is grace?")
    assert ctx == "Hit one.\n\nHit two."
    assert notes.calls == []
    assert search.calls == [("What is grace?", ["content", "commentary"], 3)]


@pytest.mark.anyio
async def test_notes_come_before_search_hits():
    notes = FakeNotes(["Note A", "Note B"])
    search = FakeSearch(["Hit one."])
    ctx = await ContextAggregator(notes, search).gather("q", user_id="user-1", study_id="study-9")
    assert ctx == "Note A\n\nNote B\n\nHit one."
    assert notes.calls == [("user-1", "study-9", 5)]


@pytest.mark.anyio
async def test_each_source_is_capped():
    notes = FakeNotes([f"note {i}" for i in range(8)])
    search = FakeSearch([f"hit {i}" for i in range(6)])
    aggregator = ContextAggregator(notes, search, notes_limit=2, search_limit=1)
    ctx = await aggregator.gather("q", user_id="user-1")
    assert ctx.split("\n\n") == ["note 0", "note 1", "hit 0"]


@pytest.mark.anyio
async def test_blank_fragments_are_dropped():
    notes = FakeNotes(["   ", "kept note"])
    search = FakeSearch(["", "kept hit"])
    ctx = await ContextAggregator(notes, search).gather("q", user_id="user-1")
    assert ctx == "kept note\n\nkept hit"


@pytest.mark.anyio
async def test_empty_sources_give_empty_context():
    ctx = await ContextAggregator(FakeNotes(), FakeSearch()).gather("q", user_id="user-1")
    assert ctx == ""


@pytest.mark.anyio
async def test_search_failure_propagates():
    search = FakeSearch(error=SearchError("index unavailable"))
    with pytest.raises(SearchError):
        await ContextAggregator(FakeNotes(["note"]), search).gather("q", user_id="user-1")
