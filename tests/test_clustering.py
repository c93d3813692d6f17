"""Tests for offline clustering and cluster labels."""

from datetime import datetime, timedelta

import numpy as np
import pytest

from gapfinder.clustering.cluster import cluster_questions, cosine_similarity, similarity_matrix
from gapfinder.clustering.labels import label_groups
from gapfinder.models import QuestionGroup, UnansweredQuestion

from conftest import FakeGenerator

BASE = datetime(2026, 10, 1, 12, 0)


def _q(i, embedding, text=None):
    return UnansweredQuestion(
        id=f"q{i}", tenant_id="t1", question=text or f"question {i}",
        embedding=embedding, created_at=BASE - timedelta(hours=i),
    )


def test_cosine_similarity():
    a, b = [1.0, 2.0, 3.0], [3.0, -1.0, 0.5]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
    assert cosine_similarity(a, a) == pytest.approx(1.0)
    assert cosine_similarity([0.0, 0.0, 0.0], a) == 0.0


def test_cosine_similarity_length_mismatch():
    with pytest.raises(ValueError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_similarity_matrix_zero_rows():
    m = similarity_matrix([[1.0, 0.0], [0.0, 0.0]])
    assert m[0, 0] == pytest.approx(1.0)
    assert m[0, 1] == 0.0
    assert not np.isnan(m).any()


def test_empty_and_single():
    assert cluster_questions([]) == []
    groups = cluster_questions([_q(0, [1.0, 0.0])])
    assert len(groups) == 1
    assert [q.id for q in groups[0].questions] == ["q0"]


def test_too_many_questions():
    qs = [_q(i, [1.0, 0.0]) for i in range(4)]
    with pytest.raises(ValueError):
        cluster_questions(qs, max_questions=3)


def test_groups_similar_questions():
    qs = [
        _q(0, [1.0, 0.0, 0.0]),
        _q(1, [0.0, 1.0, 0.0]),
        _q(2, [0.99, 0.1, 0.0]),
        _q(3, [0.98, 0.0, 0.15]),
    ]
    groups = cluster_questions(qs, similarity_threshold=0.82)
    assert [[q.id for q in g.questions] for g in groups] == [["q0", "q2", "q3"], ["q1"]]


def test_never_merges_below_threshold():
    qs = [_q(0, [1.0, 0.0]), _q(1, [0.8, 0.6]), _q(2, [0.0, 1.0])]
    # cos(q0, q1) = 0.8, cos(q1, q2) = 0.6
    groups = cluster_questions(qs, similarity_threshold=0.82)
    assert all(len(g.questions) == 1 for g in groups)
    assert [g.questions[0].id for g in groups] == ["q0", "q1", "q2"]


def test_deterministic():
    rng = np.random.default_rng(7)
    qs = [_q(i, rng.normal(size=8).tolist()) for i in range(40)]
    first = [[q.id for q in g.questions] for g in cluster_questions(qs, similarity_threshold=0.5)]
    second = [[q.id for q in g.questions] for g in cluster_questions(qs, similarity_threshold=0.5)]
    assert first == second


def test_sorted_by_size():
    qs = [
        _q(0, [0.0, 1.0]),
        _q(1, [1.0, 0.0]),
        _q(2, [1.0, 0.01]),
    ]
    groups = cluster_questions(qs)
    assert [len(g.questions) for g in groups] == [2, 1]
    assert groups[0].questions[0].id == "q1"


def test_labels_from_generator():
    groups = [
        QuestionGroup(questions=[_q(0, [1.0], "When is pickup?"), _q(1, [1.0], "Pickup time?")]),
        QuestionGroup(questions=[_q(2, [1.0], "Is there a dress code?")]),
        QuestionGroup(questions=[_q(3, [1.0], "Bus route?"), _q(4, [1.0], "Which bus?")]),
    ]
    generator = FakeGenerator(reply="Pickup times\nBus routes\n")
    label_groups(groups, generator)

    assert [g.label for g in groups] == ["Pickup times", "Is there a dress code?", "Bus routes"]
    assert len(generator.calls) == 1
    prompt = generator.calls[0]["prompt"]
    assert 'Cluster 1 (2 questions):\n  - "When is pickup?"' in prompt
    assert "dress code" not in prompt


def test_labels_fall_back_on_failure():
    groups = [QuestionGroup(questions=[_q(0, [1.0], "When is pickup?"), _q(1, [1.0], "Pickup?")])]
    label_groups(groups, FakeGenerator(error=RuntimeError("quota")))
    assert groups[0].label == "When is pickup?"


def test_labels_without_generator():
    groups = [QuestionGroup(questions=[_q(0, [1.0], "A?"), _q(1, [1.0], "B?")])]
    assert label_groups(groups, None)[0].label == "A?"


def test_short_label_reply():
    groups = [
        QuestionGroup(questions=[_q(0, [1.0], "A?"), _q(1, [1.0], "B?")]),
        QuestionGroup(questions=[_q(2, [1.0], "C?"), _q(3, [1.0], "D?")]),
    ]
    label_groups(groups, FakeGenerator(reply="Only one"))
    assert [g.label for g in groups] == ["Only one", "C?"]
