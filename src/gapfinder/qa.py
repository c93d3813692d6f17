"""Question answering over a tenant's documents, with knowledge-gap capture."""

import logging
from dataclasses import dataclass, field
from typing import Any

from .alerts.dispatcher import AlertDispatcher
from .clustering.online import assign_to_cluster
from .embeddings.embedder import Embedder
from .llm import TextGenerator
from .models import ClusterAssignment, RetrievedChunk, Source
from .query.prompt import build_system_prompt, parse_follow_ups, today_string
from .query.search import Retriever
from .storage.records import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class AskResult:
    answer: str
    follow_ups: list[str] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)
    unanswered: bool = False
    assignment: ClusterAssignment | None = None
    alerted: bool = False


@dataclass
class AuxiliaryContext:
    """Pre-formatted context blocks from the surrounding product."""
    events: str = ""
    announcements: str = ""
    household: str = ""


class QuestionAnswerer:
    """Answers one question at a time.

    When no retrieved chunk is trustworthy enough to cite, the question is
    stored as unanswered, assigned to a cluster and, if that cluster just
    became significant, operators are alerted. That bookkeeping never
    fails the answer.
    """

    def __init__(
        self,
        retriever: Retriever,
        generator: TextGenerator,
        records: RecordStore,
        embedder: Embedder,
        dispatcher: AlertDispatcher,
        config: dict[str, Any] | None = None,
    ):
        config = config or {}
        cluster_cfg = config.get("clustering", {})
        gen_cfg = config.get("generation", {})
        self.retriever = retriever
        self.generator = generator
        self.records = records
        self.embedder = embedder
        self.dispatcher = dispatcher
        self.similarity_threshold = cluster_cfg.get("similarity_threshold", 0.82)
        self.alert_threshold = cluster_cfg.get("alert_threshold", 5)
        self.max_tokens = gen_cfg.get("answer_max_tokens", 1024)
        self.temperature = gen_cfg.get("answer_temperature", 0.7)

    def ask(
        self,
        question: str,
        tenant_id: str,
        context: AuxiliaryContext | None = None,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> AskResult:
        context = context or AuxiliaryContext()

        try:
            chunks = self.retriever.search(question, tenant_id)
        except Exception as e:
            logger.error("Search failed, answering without sources: %s", e)
            chunks = []
        logger.info("Question for tenant %s: %s", tenant_id, _chunks_summary(chunks))

        sources = self.retriever.sources_for(chunks)
        result = AskResult(answer="", sources=sources, unanswered=not sources)
        if result.unanswered:
            self._record_unanswered(result, question, tenant_id, session_id, user_id)

        system = build_system_prompt(
            chunks,
            events_context=context.events,
            announcements_context=context.announcements,
            household_context=context.household,
            today=today_string(),
        )
        raw = self.generator.generate(
            question, max_tokens=self.max_tokens, temperature=self.temperature, system=system
        )
        parsed = parse_follow_ups(raw)
        result.answer = parsed.content
        result.follow_ups = parsed.follow_ups
        return result

    def _record_unanswered(
        self,
        result: AskResult,
        question: str,
        tenant_id: str,
        session_id: str | None,
        user_id: str | None,
    ) -> None:
        try:
            embedding = self.embedder.embed(question)
            stored = self.records.add_question(
                tenant_id, question, embedding, session_id=session_id, user_id=user_id
            )
            result.assignment = assign_to_cluster(
                self.records,
                stored.id,
                embedding,
                tenant_id,
                similarity_threshold=self.similarity_threshold,
                alert_threshold=self.alert_threshold,
            )
            if result.assignment.crossed_threshold:
                result.alerted = self.dispatcher.maybe_alert(result.assignment.cluster_id, tenant_id)
        except Exception as e:
            logger.error("Failed to record unanswered question for tenant %s: %s", tenant_id, e)


def _chunks_summary(chunks: list[RetrievedChunk]) -> str:
    if not chunks:
        return "no chunks"
    return f"{len(chunks)} chunks, top {chunks[0].document_title!r} ({chunks[0].similarity:.3f})"
