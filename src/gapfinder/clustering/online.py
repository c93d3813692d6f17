"""Incremental assignment of unanswered questions to persistent clusters."""

import logging
import math
from datetime import datetime

from ..models import ClusterAssignment
from ..storage.database import utcnow
from ..storage.records import RecordStore

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.82
ALERT_THRESHOLD = 5


def compute_priority_score(question_count: int, last_seen_at: datetime, now: datetime | None = None) -> float:
    """Volume first, recency as a tiebreaker: ``count * 100 + (0..10)``."""
    now = now or utcnow()
    days_since = max(0.0, (now - last_seen_at).total_seconds() / 86400)
    return question_count * 100 + max(0, 10 - math.floor(days_since))


def update_centroid(old_centroid: list[float], embedding: list[float], new_count: int) -> list[float]:
    """Running mean after adding one member: ``(old * (n - 1) + e) / n``."""
    if len(old_centroid) != len(embedding):
        raise ValueError(f"Centroid has {len(old_centroid)} dims, embedding {len(embedding)}")
    old_count = new_count - 1
    return [(c * old_count + e) / new_count for c, e in zip(old_centroid, embedding)]


def assign_to_cluster(
    records: RecordStore,
    question_id: str,
    embedding: list[float],
    tenant_id: str,
    similarity_threshold: float = SIMILARITY_THRESHOLD,
    alert_threshold: int = ALERT_THRESHOLD,
) -> ClusterAssignment:
    """Put a stored question into the nearest cluster of its tenant, or a new one.

    The read of the nearest cluster and the following write are separate
    statements, so two concurrent calls that both see no match each create
    a cluster. Reports ``crossed_threshold`` when this question lifted an
    unalerted cluster to alert_threshold members.
    """
    match = records.match_nearest_cluster(tenant_id, embedding, similarity_threshold)

    if match is not None:
        cluster, similarity = match
        old_count = cluster.question_count
        new_count = old_count + 1
        now = utcnow()
        records.update_cluster_assignment(
            cluster.id,
            centroid=update_centroid(cluster.centroid, embedding, new_count),
            question_count=new_count,
            priority_score=compute_priority_score(new_count, now, now),
            last_seen_at=now,
        )
        crossed = old_count < alert_threshold <= new_count and cluster.alert_sent_at is None
        assignment = ClusterAssignment(cluster_id=cluster.id, crossed_threshold=crossed)
        logger.info(
            "Question %s joined cluster %s (sim %.3f, %d questions)",
            question_id, cluster.id, similarity, new_count,
        )
    else:
        now = utcnow()
        cluster = records.create_cluster(
            tenant_id=tenant_id,
            centroid=embedding,
            question_count=1,
            priority_score=compute_priority_score(1, now, now),
            first_seen_at=now,
            last_seen_at=now,
        )
        assignment = ClusterAssignment(cluster_id=cluster.id, crossed_threshold=False, created=True)
        logger.info("Question %s started cluster %s", question_id, cluster.id)

    if not records.set_question_cluster(question_id, assignment.cluster_id):
        logger.warning("Question %s already belongs to a cluster", question_id)
    return assignment
