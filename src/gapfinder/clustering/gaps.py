"""Knowledge-gap report: unanswered questions grouped for operators."""

import logging

from ..llm import TextGenerator
from ..models import GapReport, QuestionGroup, UnansweredQuestion
from ..storage.records import RecordStore
from .cluster import MAX_BATCH_QUESTIONS, SIMILARITY_THRESHOLD, cluster_questions
from .labels import label_groups

logger = logging.getLogger(__name__)

REPORT_QUESTION_LIMIT = 200


def _report(questions: list[UnansweredQuestion], label: str, priority: float, cluster_id: str | None) -> GapReport:
    # questions arrive newest first
    return GapReport(
        label=label,
        count=len(questions),
        questions=questions,
        oldest=questions[-1].created_at,
        newest=questions[0].created_at,
        priority_score=priority,
        cluster_id=cluster_id,
    )


def get_unanswered_groups(
    records: RecordStore,
    tenant_id: str,
    generator: TextGenerator | None = None,
    similarity_threshold: float = SIMILARITY_THRESHOLD,
    limit: int = REPORT_QUESTION_LIMIT,
) -> list[GapReport]:
    """Recent unanswered questions of a tenant, grouped and ranked.

    Questions with a cluster are grouped by that cluster and ranked by its
    stored priority. Questions without one are clustered on the fly and
    ranked by ``count * 100``; those groups are not persisted. Unlabelled
    persistent clusters with more than one question get a generated label,
    which is saved.
    """
    questions = records.list_questions(tenant_id, limit=limit)
    if not questions:
        return []

    by_cluster: dict[str, list[UnansweredQuestion]] = {}
    orphans = []
    for q in questions:
        if q.cluster_id:
            by_cluster.setdefault(q.cluster_id, []).append(q)
        else:
            orphans.append(q)

    reports: list[GapReport] = []
    unlabelled: list[GapReport] = []
    for cluster in records.list_clusters(tenant_id):
        members = by_cluster.get(cluster.id)
        if not members:
            continue
        report = _report(members, cluster.label or members[0].question, cluster.priority_score, cluster.id)
        reports.append(report)
        if not cluster.label and len(members) > 1:
            unlabelled.append(report)

    if orphans:
        groups = cluster_questions(
            orphans, similarity_threshold, max_questions=max(MAX_BATCH_QUESTIONS, limit)
        )
        for group in label_groups(groups, generator):
            reports.append(_report(group.questions, group.label, len(group.questions) * 100, None))

    if unlabelled and generator is not None:
        labelled = label_groups([QuestionGroup(questions=r.questions) for r in unlabelled], generator)
        for report, group in zip(unlabelled, labelled):
            if group.label == report.questions[0].question:
                continue
            report.label = group.label
            try:
                records.set_cluster_label(report.cluster_id, group.label)
            except Exception as e:
                logger.warning("Could not save label for cluster %s: %s", report.cluster_id, e)

    reports.sort(key=lambda r: r.priority_score, reverse=True)
    return reports
