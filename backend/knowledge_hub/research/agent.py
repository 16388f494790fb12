"""DeepSearch research agent.

A run moves one :class:`ResearchQuery` through
``pending -> searching -> synthesizing -> complete`` (or ``error``):

1. the question is decomposed into numbered sub-questions by the chat model;
2. each sub-question is sent, in order, to an online-search model and the URLs
   in its answer become citations;
3. the findings are synthesized into one report and the citations are
   deduplicated by URL.

Progress is published as :class:`ResearchEvent` objects on a
:class:`ResearchChannel`; observing it is optional.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Protocol, Sequence

from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import ResearchCancelled, ResearchError
from knowledge_hub.core.logging import get_logger, log_context
from knowledge_hub.core.metrics import RESEARCH_RUNS
from knowledge_hub.models.entities import Citation, ResearchQuery, ResearchStatus, SubQuestionResult
from knowledge_hub.research import prompts

logger = get_logger(__name__)

_NUMBER_PREFIX_RE = re.compile(r"^\d+\.\s*")
_URL_RE = re.compile(r"https?://[^\s\]]+")
_URL_TRAILING_PUNCTUATION = ".,;:!?)"


class ChatCompleter(Protocol):
    async def complete(self, model: str, prompt: str) -> str: ...


@dataclass(slots=True)
class ResearchEvent:
    """One progress notification; ``query`` is a snapshot taken when it was sent."""

    kind: str
    query: ResearchQuery
    detail: str | None = None

    @property
    def status(self) -> ResearchStatus:
        return self.query.status


class ResearchChannel:
    """Ordered event queue between a running agent and its observer."""

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: ResearchEvent) -> None:
        if self._closed:
            raise ResearchError("Cannot publish to a closed research channel")
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    def drain(self) -> list[ResearchEvent]:
        """Return every event queued so far without waiting."""
        events: list[ResearchEvent] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is self._CLOSED:
                # keep the end marker for async consumers
                self._queue.put_nowait(item)
                break
            events.append(item)  # type: ignore[arg-type]
        return events

    def __aiter__(self) -> AsyncIterator[ResearchEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ResearchEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                self._queue.put_nowait(item)
                return
            yield item  # type: ignore[misc]


class ResearchAgent:
    """Decompose, search, and synthesize a research question."""

    def __init__(
        self,
        chat_client: ChatCompleter,
        chat_model: str,
        search_model: str,
        max_sub_questions: int = 5,
        isolate_search_failures: bool = True,
    ) -> None:
        self.chat_client = chat_client
        self.chat_model = chat_model
        self.search_model = search_model
        self.max_sub_questions = max_sub_questions
        self.isolate_search_failures = isolate_search_failures

    @classmethod
    def from_settings(cls, settings: Settings, chat_client: ChatCompleter) -> "ResearchAgent":
        return cls(
            chat_client=chat_client,
            chat_model=settings.chat_model,
            search_model=settings.search_model,
            max_sub_questions=settings.max_sub_questions,
            isolate_search_failures=settings.isolate_search_failures,
        )

    async def run(
        self,
        question: str,
        channel: ResearchChannel | None = None,
        cancel_event: asyncio.Event | None = None,
        max_sub_questions: int | None = None,
    ) -> ResearchQuery:
        """Execute a full research run.

        On failure the query is left in ``error`` with whatever sub-questions
        and results were gathered, an ``error`` event is published, and the
        exception is re-raised. ``channel`` is closed when the run ends.
        """
        limit = max_sub_questions or self.max_sub_questions
        if cancel_event is not None and cancel_event.is_set():
            if channel is not None:
                channel.close()
            raise ResearchCancelled("Research run cancelled before it started")
        query = ResearchQuery(question=question)

        def emit(kind: str, detail: str | None = None) -> None:
            if channel is not None:
                channel.publish(ResearchEvent(kind=kind, query=query.snapshot(), detail=detail))

        try:
            query.transition(ResearchStatus.SEARCHING)
            emit("status")

            query.sub_questions = await self.decompose(question, limit)
            emit("sub_questions")

            for sub_question in query.sub_questions:
                _check_cancelled(cancel_event)
                result = await self._search_with_policy(sub_question)
                query.search_results.append(result)
                emit("search_result", detail=sub_question)

            if query.search_results and all(result.error for result in query.search_results):
                raise ResearchError("All sub-question searches failed")

            _check_cancelled(cancel_event)
            query.transition(ResearchStatus.SYNTHESIZING)
            emit("status")

            synthesis, citations = await self.synthesize(question, query.search_results)
            query.synthesis = synthesis
            query.citations = citations
            query.transition(ResearchStatus.COMPLETE)
            emit("complete")
            RESEARCH_RUNS.labels(outcome="complete").inc()
            logger.info(
                "Research complete",
                extra=log_context(sub_questions=len(query.sub_questions), citations=len(query.citations)),
            )
            return query
        except (Exception, asyncio.CancelledError) as exc:
            if not query.is_terminal:
                query.transition(ResearchStatus.ERROR)
            query.error = str(exc) or exc.__class__.__name__
            emit("error", detail=query.error)
            RESEARCH_RUNS.labels(outcome="error").inc()
            logger.warning("Research failed during %s: %s", _phase(query), query.error)
            raise
        finally:
            if channel is not None:
                channel.close()

    async def stream(
        self,
        question: str,
        cancel_event: asyncio.Event | None = None,
        max_sub_questions: int | None = None,
    ) -> AsyncIterator[ResearchEvent]:
        """Run research in the background and yield its events in order.

        The run's exception, if any, is raised after its ``error`` event.
        """
        channel = ResearchChannel()
        task = asyncio.create_task(
            self.run(question, channel=channel, cancel_event=cancel_event, max_sub_questions=max_sub_questions)
        )
        try:
            async for event in channel:
                yield event
            await task
        finally:
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

    async def decompose(self, question: str, limit: int | None = None) -> list[str]:
        limit = limit or self.max_sub_questions
        prompt = prompts.DECOMPOSITION_PROMPT.format(max_sub_questions=limit, question=question)
        content = await self.chat_client.complete(self.chat_model, prompt)
        sub_questions = parse_sub_questions(content, limit)
        if not sub_questions:
            logger.info("Decomposition produced no sub-questions; using the original question")
            return [question]
        return sub_questions

    async def search_sub_question(self, question: str) -> SubQuestionResult:
        answer = await self.chat_client.complete(self.search_model, question)
        return SubQuestionResult(question=question, answer=answer, sources=extract_citations(answer))

    async def synthesize(
        self,
        question: str,
        results: Sequence[SubQuestionResult],
    ) -> tuple[str, list[Citation]]:
        findings = prompts.FINDING_SEPARATOR.join(
            prompts.FINDING_TEMPLATE.format(
                number=number,
                question=result.question,
                answer=result.answer if not result.error else prompts.NO_FINDING_PLACEHOLDER,
            )
            for number, result in enumerate(results, start=1)
        )
        prompt = prompts.SYNTHESIS_PROMPT.format(question=question, findings=findings)
        synthesis = await self.chat_client.complete(self.chat_model, prompt)
        citations = dedupe_citations(source for result in results for source in result.sources)
        return synthesis, citations

    async def _search_with_policy(self, sub_question: str) -> SubQuestionResult:
        try:
            return await self.search_sub_question(sub_question)
        except Exception as exc:
            if not self.isolate_search_failures:
                raise
            logger.warning("Search failed for sub-question %r: %s", sub_question, exc)
            return SubQuestionResult(question=sub_question, answer="", sources=[], error=str(exc) or exc.__class__.__name__)


def parse_sub_questions(content: str, limit: int) -> list[str]:
    """Strip ``N. `` prefixes from non-blank lines and keep up to ``limit``."""
    questions: list[str] = []
    for line in content.splitlines():
        if not line.strip():
            continue
        cleaned = _NUMBER_PREFIX_RE.sub("", line.strip()).strip()
        if cleaned:
            questions.append(cleaned)
    return questions[:limit]


def extract_citations(text: str) -> list[Citation]:
    citations: list[Citation] = []
    for index, match in enumerate(_URL_RE.findall(text)):
        citations.append(
            Citation(
                id=f"citation-{index}",
                title=f"Source {index + 1}",
                url=match.rstrip(_URL_TRAILING_PUNCTUATION),
            )
        )
    return citations


def dedupe_citations(citations: Iterable[Citation]) -> list[Citation]:
    """Keep the first citation for each URL, preserving order."""
    seen: set[str] = set()
    unique: list[Citation] = []
    for citation in citations:
        if citation.url in seen:
            continue
        seen.add(citation.url)
        unique.append(citation)
    return unique


def _check_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ResearchCancelled("Research run cancelled")


def _phase(query: ResearchQuery) -> str:
    if query.synthesis is None and len(query.search_results) == len(query.sub_questions) and query.sub_questions:
        return "synthesis"
    if query.sub_questions:
        return "search"
    return "decomposition"


__all__ = [
    "ResearchAgent",
    "ResearchChannel",
    "ResearchEvent",
    "parse_sub_questions",
    "extract_citations",
    "dedupe_citations",
]
