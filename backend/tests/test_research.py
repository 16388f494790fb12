"""Tests for the DeepSearch research agent."""

from __future__ import annotations

import asyncio

import pytest

from knowledge_hub.core.errors import InvalidTransition, ProviderUnavailable, ResearchCancelled, ResearchError
from knowledge_hub.models.entities import Citation, ResearchQuery, ResearchStatus
from knowledge_hub.research.agent import (
    ResearchAgent,
    ResearchChannel,
    dedupe_citations,
    extract_citations,
    parse_sub_questions,
)

CHAT = "chat-model"
SEARCH = "search-model"


def _agent(client, **kwargs) -> ResearchAgent:
    return ResearchAgent(client, chat_model=CHAT, search_model=SEARCH, **kwargs)


def test_parse_sub_questions() -> None:
    content = "1. What is X?\n\n2.   How does Y work?\n   \n3. Why Z?\n4. Extra"
    assert parse_sub_questions(content, 3) == ["What is X?", "How does Y work?", "Why Z?"]
    assert parse_sub_questions("Just one line", 5) == ["Just one line"]
    assert parse_sub_questions("\n  \n1. \n", 5) == []


def test_extract_and_dedupe_citations() -> None:
    text = "See https://a.example/x. Also (https://b.example/y) and [https://a.example/x]."
    citations = extract_citations(text)
    assert [c.url for c in citations] == ["https://a.example/x", "https://b.example/y", "https://a.example/x"]
    assert [c.id for c in citations] == ["citation-0", "citation-1", "citation-2"]
    assert citations[1].title == "Source 2"

    merged = dedupe_citations(
        [
            Citation(id="1", title="first", url="https://a"),
            Citation(id="2", title="second", url="https://b"),
            Citation(id="3", title="dup", url="https://a"),
        ]
    )
    assert [(c.title, c.url) for c in merged] == [("first", "https://a"), ("second", "https://b")]


def test_status_transitions_are_enforced() -> None:
    query = ResearchQuery(question="q")
    for target in (ResearchStatus.COMPLETE, ResearchStatus.ERROR):
        with pytest.raises(InvalidTransition):
            query.transition(target)
    assert query.status is ResearchStatus.PENDING
    query.transition(ResearchStatus.SEARCHING)
    query.transition(ResearchStatus.ERROR)
    assert query.is_terminal
    with pytest.raises(InvalidTransition):
        query.transition(ResearchStatus.SEARCHING)


@pytest.mark.asyncio
async def test_full_run_with_events(fake_chat_factory) -> None:
    client = fake_chat_factory(
        {
            CHAT: ["1. First?\n2. Second?", "Final report citing Source 1."],
            SEARCH: lambda prompt: f"Answer to {prompt} https://shared.example/ref https://{prompt[:-1].lower()}.example",
        }
    )
    channel = ResearchChannel()
    query = await _agent(client).run("Big question", channel=channel)

    assert query.status is ResearchStatus.COMPLETE
    assert query.sub_questions == ["First?", "Second?"]
    assert [r.question for r in query.search_results] == ["First?", "Second?"]
    assert query.synthesis == "Final report citing Source 1."
    assert [c.url for c in query.citations] == [
        "https://shared.example/ref",
        "https://first.example",
        "https://second.example",
    ]

    events = channel.drain()
    assert [e.kind for e in events] == ["status", "sub_questions", "search_result", "search_result", "status", "complete"]
    assert [e.status for e in events] == [
        ResearchStatus.SEARCHING,
        ResearchStatus.SEARCHING,
        ResearchStatus.SEARCHING,
        ResearchStatus.SEARCHING,
        ResearchStatus.SYNTHESIZING,
        ResearchStatus.COMPLETE,
    ]
    # snapshots do not change after they were published
    assert len(events[2].query.search_results) == 1
    assert channel.closed

    synthesis_prompt = client.calls[-1][1]
    assert "## Sub-question 1: First?" in synthesis_prompt
    assert "Big question" in synthesis_prompt


@pytest.mark.asyncio
async def test_empty_decomposition_falls_back_to_question(fake_chat_factory) -> None:
    client = fake_chat_factory({CHAT: ["   \n\n", "report"], SEARCH: ["answer"]})
    query = await _agent(client).run("Only question")
    assert query.sub_questions == ["Only question"]
    assert client.calls[1] == (SEARCH, "Only question")


@pytest.mark.asyncio
async def test_sub_question_limit(fake_chat_factory) -> None:
    listing = "\n".join(f"{i}. Q{i}" for i in range(1, 9))
    client = fake_chat_factory({CHAT: [listing, "report"], SEARCH: lambda prompt: "ok"})
    query = await _agent(client, max_sub_questions=5).run("q")
    assert query.sub_questions == ["Q1", "Q2", "Q3", "Q4", "Q5"]
    query = await _agent(fake_chat_factory({CHAT: [listing, "report"], SEARCH: lambda p: "ok"})).run(
        "q", max_sub_questions=2
    )
    assert len(query.search_results) == 2


@pytest.mark.asyncio
async def test_search_failure_is_isolated(fake_chat_factory) -> None:
    client = fake_chat_factory(
        {
            CHAT: ["1. A\n2. B", "report"],
            SEARCH: [ProviderUnavailable("search down"), "B answer https://b.example"],
        }
    )
    query = await _agent(client).run("q")
    assert query.status is ResearchStatus.COMPLETE
    failed, ok = query.search_results
    assert failed.error == "search down"
    assert failed.answer == "" and failed.sources == []
    assert ok.error is None
    assert [c.url for c in query.citations] == ["https://b.example"]
    assert "(no findings" in client.calls[-1][1]


@pytest.mark.asyncio
async def test_search_failure_fails_fast_when_not_isolated(fake_chat_factory) -> None:
    client = fake_chat_factory({CHAT: ["1. A\n2. B"], SEARCH: [ProviderUnavailable("search down"), "unused"]})
    channel = ResearchChannel()
    with pytest.raises(ProviderUnavailable):
        await _agent(client, isolate_search_failures=False).run("q", channel=channel)
    events = channel.drain()
    assert events[-1].kind == "error"
    assert events[-1].query.status is ResearchStatus.ERROR
    assert events[-1].query.error == "search down"
    assert events[-1].query.synthesis is None


@pytest.mark.asyncio
async def test_all_searches_failing_is_an_error(fake_chat_factory) -> None:
    client = fake_chat_factory({CHAT: ["1. A"], SEARCH: [ProviderUnavailable("down")]})
    with pytest.raises(ResearchError):
        await _agent(client).run("q")


@pytest.mark.asyncio
async def test_decomposition_failure_sets_error(fake_chat_factory) -> None:
    client = fake_chat_factory({CHAT: [ProviderUnavailable("chat down")]})
    channel = ResearchChannel()
    with pytest.raises(ProviderUnavailable):
        await _agent(client).run("q", channel=channel)
    kinds = [e.kind for e in channel.drain()]
    assert kinds == ["status", "error"]


@pytest.mark.asyncio
async def test_cancellation_before_start(fake_chat_factory) -> None:
    client = fake_chat_factory({CHAT: [], SEARCH: []})
    cancel = asyncio.Event()
    cancel.set()
    channel = ResearchChannel()
    with pytest.raises(ResearchCancelled):
        await _agent(client).run("q", channel=channel, cancel_event=cancel)
    assert client.calls == []
    assert channel.closed
    assert channel.drain() == []


@pytest.mark.asyncio
async def test_cancellation_between_searches(fake_chat_factory) -> None:
    cancel = asyncio.Event()

    def search(prompt: str) -> str:
        cancel.set()
        return "first answer"

    client = fake_chat_factory({CHAT: ["1. A\n2. B\n3. C"], SEARCH: search})
    channel = ResearchChannel()
    with pytest.raises(ResearchCancelled):
        await _agent(client).run("q", channel=channel, cancel_event=cancel)
    assert len([call for call in client.calls if call[0] == SEARCH]) == 1
    last = channel.drain()[-1]
    assert last.kind == "error"
    assert len(last.query.search_results) == 1


@pytest.mark.asyncio
async def test_stream_yields_events_then_raises(fake_chat_factory) -> None:
    ok_client = fake_chat_factory({CHAT: ["1. A", "report"], SEARCH: ["answer"]})
    kinds = [event.kind async for event in _agent(ok_client).stream("q")]
    assert kinds[0] == "status" and kinds[-1] == "complete"

    bad_client = fake_chat_factory({CHAT: [ProviderUnavailable("down")]})
    seen = []
    with pytest.raises(ProviderUnavailable):
        async for event in _agent(bad_client).stream("q"):
            seen.append(event.kind)
    assert seen == ["status", "error"]
