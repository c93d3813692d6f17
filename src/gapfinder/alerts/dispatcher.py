"""Exactly-once operator alerts for clusters that crossed the alert threshold."""

import logging
from typing import Any

from ..clustering.labels import label_groups
from ..llm import TextGenerator
from ..models import Notification, QuestionCluster, QuestionGroup
from ..storage.records import RecordStore
from .email import alert_subject, build_alert_email
from .mailer import ResendMailer

logger = logging.getLogger(__name__)

DEFAULT_LABEL = "Unanswered questions"
NOTIFICATION_TYPE = "cluster_alert"


class AlertDispatcher:
    """Notifies a tenant's operators about a significant cluster.

    The claim on ``alert_sent_at`` is a conditional update in the record
    store, so among any number of concurrent callers for one cluster only
    one proceeds to notify.
    """

    def __init__(
        self,
        records: RecordStore,
        mailer: ResendMailer,
        generator: TextGenerator | None = None,
        config: dict[str, Any] | None = None,
    ):
        alerts_cfg = (config or {}).get("alerts", {})
        self.records = records
        self.mailer = mailer
        self.generator = generator
        self.app_url = alerts_cfg.get("app_url", "http://localhost:3000").rstrip("/")
        self.label_sample_size = alerts_cfg.get("label_sample_size", 10)
        self.evidence_count = alerts_cfg.get("evidence_count", 3)

    def maybe_alert(self, cluster_id: str, tenant_id: str) -> bool:
        """Claim the cluster's alert and notify operators.

        Returns:
            True if this call claimed the alert, False if it had already
            been claimed. Failures after the claim are logged; the claim is
            kept and the alert is not retried.
        """
        cluster = self.records.claim_alert(cluster_id)
        if cluster is None:
            logger.debug("Alert for cluster %s already claimed", cluster_id)
            return False

        logger.info("Cluster %s crossed the alert threshold (%d questions)", cluster_id, cluster.question_count)
        try:
            self._notify(cluster, tenant_id)
        except Exception as e:
            logger.error("Alert dispatch failed for cluster %s: %s", cluster_id, e)
        return True

    def _label(self, cluster: QuestionCluster) -> str:
        if cluster.label:
            return cluster.label
        questions = self.records.list_cluster_questions(cluster.id, limit=self.label_sample_size)
        if not questions:
            return DEFAULT_LABEL
        label = label_groups([QuestionGroup(questions=questions)], self.generator)[0].label
        self.records.set_cluster_label(cluster.id, label)
        return label

    def _notify(self, cluster: QuestionCluster, tenant_id: str) -> None:
        label = self._label(cluster)

        evidence = [
            q.question
            for q in self.records.list_cluster_questions(cluster.id, limit=self.evidence_count, newest_first=True)
        ]

        tenant = self.records.get_tenant(tenant_id)
        slug = tenant.slug if tenant and tenant.slug else tenant_id
        tenant_name = tenant.name if tenant else "Your organization"
        link = f"/s/{slug}/admin/feedback"

        operators = self.records.list_operators(tenant_id)
        if not operators:
            logger.info("No operators to alert for tenant %s", tenant_id)
            return

        try:
            self.records.add_notifications([
                Notification(
                    tenant_id=tenant_id,
                    user_id=op.id,
                    type=NOTIFICATION_TYPE,
                    title=f'{cluster.question_count}+ people asking about "{label}"',
                    body=f"A knowledge gap has been detected. Sample questions: {'; '.join(evidence)}",
                    link=link,
                )
                for op in operators
            ])
            logger.info("Created %d notifications for cluster %s", len(operators), cluster.id)
        except Exception as e:
            logger.error("Failed to create notifications for cluster %s: %s", cluster.id, e)

        emails = [op.email for op in operators if op.email]
        if not emails:
            return
        html = build_alert_email(
            tenant_name=tenant_name,
            label=label,
            question_count=cluster.question_count,
            sample_questions=evidence,
            feedback_url=f"{self.app_url}{link}",
        )
        self.mailer.send(emails, alert_subject(label, cluster.question_count), html)
