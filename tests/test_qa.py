"""Tests for question answering and unanswered-question capture."""

import pytest

from gapfinder.alerts.dispatcher import AlertDispatcher
from gapfinder.errors import StorageError
from gapfinder.models import ChunkRecord
from gapfinder.qa import AuxiliaryContext, QuestionAnswerer
from gapfinder.query.prompt import FOLLOW_UP_MARKER
from gapfinder.query.search import Retriever

from conftest import FakeGenerator, RecordingMailer

Q = [1.0, 0.0, 0.0, 0.0]
A = [0.9, 0.43589, 0.0, 0.0]
BUS = [0.0, 0.0, 1.0, 0.0]

REPLY = f"Pickup is at 3pm.\n\n{FOLLOW_UP_MARKER}\n1. Is there late pickup?\n2. Who can pick up?\n3. Where is the gate?"


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def generator():
    return FakeGenerator(reply=REPLY)


@pytest.fixture
def answerer(embedder, vectors, records, config, generator, mailer, model):
    model.vectors["When is pickup?"] = Q
    for i in range(1, 8):
        model.vectors[f"Is there a bus {i}?"] = [0.0, 0.01 * i, 1.0, 0.0]
    retriever = Retriever(embedder, vectors, records, config)
    dispatcher = AlertDispatcher(records, mailer, generator, config)
    return QuestionAnswerer(retriever, generator, records, embedder, dispatcher, config)


@pytest.fixture
def handbook(records, vectors, tenant):
    doc = records.create_document(
        tenant_id=tenant.id, title="Handbook", file_name="handbook.pdf", file_type="pdf",
        file_path=f"{tenant.id}/handbook.pdf",
    )
    vectors.add_chunks([ChunkRecord(
        document_id=doc.id, tenant_id=tenant.id, index=0,
        content="Dismissal and pickup happen at 3pm at the north gate.", embedding=A,
    )])
    return doc


def test_answered_question(answerer, handbook, tenant, records, generator):
    result = answerer.ask("When is pickup?", tenant.id)

    assert result.answer == "Pickup is at 3pm."
    assert result.follow_ups == ["Is there late pickup?", "Who can pick up?", "Where is the gate?"]
    assert not result.unanswered
    assert [s.title for s in result.sources] == ["Handbook"]
    assert result.sources[0].source_number == 1
    assert records.list_questions(tenant.id) == []

    call = generator.calls[0]
    assert call["prompt"] == "When is pickup?"
    assert '[Source 1: "Handbook"]' in call["system"]
    assert "Today's date is" in call["system"]


def test_unanswered_question_is_recorded(answerer, tenant, records, generator):
    result = answerer.ask("Is there a bus 1?", tenant.id, session_id="s1", user_id="u1")

    assert result.unanswered
    assert result.sources == []
    assert result.answer == "Pickup is at 3pm."
    assert result.assignment.created
    assert not result.alerted

    [question] = records.list_questions(tenant.id)
    assert question.question == "Is there a bus 1?"
    assert question.session_id == "s1"
    assert question.cluster_id == result.assignment.cluster_id
    assert "No relevant information was found" in generator.calls[0]["system"]


def test_auxiliary_context_reaches_prompt(answerer, tenant, generator):
    context = AuxiliaryContext(
        events='EVENTS (upcoming and recent):\n- "Field Day" on 2026-05-01 (general)',
        household="HOUSEHOLD MEMBERS:\n- Ana (3rd)",
    )
    answerer.ask("Is there a bus 1?", tenant.id, context=context)

    system = generator.calls[0]["system"]
    assert "Field Day" in system
    assert "Ana (3rd)" in system
    assert "No matching documents were found" in system


def test_fifth_similar_question_alerts_once(answerer, tenant, records, mailer):
    records.add_operator(tenant.id, email="admin@example.com")

    results = [answerer.ask(f"Is there a bus {i}?", tenant.id) for i in range(1, 8)]

    assert [r.alerted for r in results] == [False, False, False, False, True, False, False]
    assert len({r.assignment.cluster_id for r in results}) == 1
    cluster_id = results[0].assignment.cluster_id
    assert not answerer.dispatcher.maybe_alert(cluster_id, tenant.id)

    assert len(mailer.sent) == 1
    assert len(records.list_notifications(tenant.id)) == 1
    cluster = records.get_cluster(cluster_id)
    assert cluster.question_count == 7
    assert cluster.alert_sent_at is not None


def test_search_failure_still_answers(embedder, records, config, generator, mailer, tenant):
    class BrokenVectors:
        def match_chunks(self, *args, **kwargs):
            raise StorageError("index unavailable")

    dispatcher = AlertDispatcher(records, mailer, generator, config)
    answerer = QuestionAnswerer(
        Retriever(embedder, BrokenVectors(), records, config), generator, records, embedder, dispatcher, config
    )
    result = answerer.ask("When is pickup?", tenant.id)

    assert result.answer == "Pickup is at 3pm."
    assert result.unanswered
    assert len(records.list_questions(tenant.id)) == 1


def test_recording_failure_is_not_fatal(answerer, tenant, records, monkeypatch):
    def broken(*args, **kwargs):
        raise StorageError("disk full")

    monkeypatch.setattr(records, "add_question", broken)
    result = answerer.ask("Is there a bus 1?", tenant.id)

    assert result.unanswered
    assert result.assignment is None
    assert result.answer == "Pickup is at 3pm."


def test_generation_failure_propagates(answerer, tenant, records, generator):
    generator.error = RuntimeError("API down")
    with pytest.raises(RuntimeError):
        answerer.ask("Is there a bus 1?", tenant.id)
    # the gap is captured before generation
    assert len(records.list_questions(tenant.id)) == 1
