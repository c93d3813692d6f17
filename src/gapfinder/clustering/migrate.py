"""One-shot backfill of unclustered questions into persistent clusters."""

import logging

import numpy as np

from ..llm import TextGenerator
from ..storage.records import RecordStore
from .cluster import MAX_BATCH_QUESTIONS, SIMILARITY_THRESHOLD, cluster_questions
from .labels import label_groups
from .online import compute_priority_score

logger = logging.getLogger(__name__)


def backfill_clusters(
    records: RecordStore,
    tenant_id: str,
    generator: TextGenerator | None = None,
    similarity_threshold: float = SIMILARITY_THRESHOLD,
    limit: int = MAX_BATCH_QUESTIONS,
) -> int:
    """Cluster a tenant's orphan questions and persist the groups.

    Each group becomes a cluster with the mean embedding as centroid and its
    first/last-seen range taken from the member timestamps. ``alert_sent_at``
    is left empty and no alert is sent for historical questions.

    Returns:
        Number of clusters created.
    """
    orphans = records.list_orphan_questions(tenant_id, limit=limit)
    if not orphans:
        logger.info("No orphan questions for tenant %s", tenant_id)
        return 0

    groups = label_groups(cluster_questions(orphans, similarity_threshold, max_questions=limit), generator)
    logger.info("Tenant %s: %d orphan questions in %d groups", tenant_id, len(orphans), len(groups))

    created = 0
    for group in groups:
        members = group.questions
        newest = max(q.created_at for q in members)
        oldest = min(q.created_at for q in members)
        centroid = np.mean(np.asarray([q.embedding for q in members], dtype=float), axis=0)
        try:
            cluster = records.create_cluster(
                tenant_id=tenant_id,
                centroid=centroid.tolist(),
                question_count=len(members),
                priority_score=compute_priority_score(len(members), newest),
                first_seen_at=oldest,
                last_seen_at=newest,
                label=group.label,
            )
        except Exception as e:
            logger.error("Failed to create cluster %r: %s", group.label, e)
            continue
        for q in members:
            records.set_question_cluster(q.id, cluster.id)
        created += 1
        logger.info("Cluster %r: %d questions", group.label, len(members))
    return created
