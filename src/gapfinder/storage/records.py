"""Relational records: documents, unanswered questions, clusters, notifications.

Every method opens its own session, so one RecordStore can be shared by
concurrent request handlers.
"""

import logging
from datetime import datetime
from typing import Any

import numpy as np
from sqlalchemy import select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..errors import StorageError
from ..models import (
    Document,
    DocumentStatus,
    Notification,
    Operator,
    QuestionCluster,
    Tenant,
    UnansweredQuestion,
)
from .database import (
    ClusterRow,
    DocumentRow,
    NotificationRow,
    OperatorRow,
    QuestionRow,
    TenantRow,
    init_db,
    utcnow,
)

logger = logging.getLogger(__name__)


def _to_document(row: DocumentRow) -> Document:
    return Document(
        id=row.id,
        tenant_id=row.tenant_id,
        title=row.title,
        file_name=row.file_name,
        file_type=row.file_type,
        file_path=row.file_path,
        file_size=row.file_size,
        status=DocumentStatus(row.status),
        error_message=row.error_message,
        summary=row.summary,
        chunk_count=row.chunk_count,
        text_path=row.text_path,
        pdf_path=row.pdf_path,
        tags=list(row.tags or []),
        category=row.category,
        folder=row.folder,
    )


def _to_question(row: QuestionRow) -> UnansweredQuestion:
    return UnansweredQuestion(
        id=row.id,
        tenant_id=row.tenant_id,
        question=row.question,
        embedding=list(row.embedding),
        created_at=row.created_at,
        cluster_id=row.cluster_id,
        session_id=row.session_id,
        user_id=row.user_id,
    )


def _to_cluster(row: ClusterRow) -> QuestionCluster:
    return QuestionCluster(
        id=row.id,
        tenant_id=row.tenant_id,
        centroid=list(row.centroid),
        question_count=row.question_count,
        priority_score=row.priority_score,
        first_seen_at=row.first_seen_at,
        last_seen_at=row.last_seen_at,
        label=row.label,
        alert_sent_at=row.alert_sent_at,
    )


def _document_values(values: dict[str, Any]) -> dict[str, Any]:
    values = dict(values)
    if isinstance(values.get("status"), DocumentStatus):
        values["status"] = values["status"].value
    values["updated_at"] = utcnow()
    return values


class RecordStore:
    """Tenant-scoped repository over the relational schema."""

    def __init__(self, engine: Engine, create_tables: bool = True):
        self.engine = engine
        self._session = sessionmaker(engine, expire_on_commit=False)
        if create_tables:
            init_db(engine)

    # -- tenants and operators -------------------------------------------------

    def add_tenant(self, name: str, slug: str | None = None, tenant_id: str | None = None) -> Tenant:
        with self._session.begin() as s:
            row = TenantRow(name=name, slug=slug)
            if tenant_id:
                row.id = tenant_id
            s.add(row)
            s.flush()
            return Tenant(id=row.id, name=row.name, slug=row.slug)

    def get_tenant(self, tenant_id: str) -> Tenant | None:
        with self._session() as s:
            row = s.get(TenantRow, tenant_id)
            return Tenant(id=row.id, name=row.name, slug=row.slug) if row else None

    def list_tenants(self) -> list[Tenant]:
        with self._session() as s:
            rows = s.scalars(select(TenantRow).order_by(TenantRow.name)).all()
            return [Tenant(id=r.id, name=r.name, slug=r.slug) for r in rows]

    def add_operator(self, tenant_id: str, email: str | None = None, name: str | None = None) -> Operator:
        with self._session.begin() as s:
            row = OperatorRow(tenant_id=tenant_id, email=email, name=name)
            s.add(row)
            s.flush()
            return Operator(id=row.id, tenant_id=row.tenant_id, email=row.email, name=row.name)

    def list_operators(self, tenant_id: str) -> list[Operator]:
        with self._session() as s:
            rows = s.scalars(select(OperatorRow).where(OperatorRow.tenant_id == tenant_id)).all()
            return [Operator(id=r.id, tenant_id=r.tenant_id, email=r.email, name=r.name) for r in rows]

    # -- documents -------------------------------------------------------------

    def create_document(
        self,
        tenant_id: str,
        title: str,
        file_name: str,
        file_type: str,
        file_path: str,
        file_size: int = 0,
        tags: list[str] | None = None,
        category: str | None = None,
        folder: str | None = None,
    ) -> Document:
        with self._session.begin() as s:
            row = DocumentRow(
                tenant_id=tenant_id,
                title=title,
                file_name=file_name,
                file_type=file_type,
                file_path=file_path,
                file_size=file_size,
                status=DocumentStatus.PENDING.value,
                tags=tags or [],
                category=category,
                folder=folder,
            )
            s.add(row)
            s.flush()
            return _to_document(row)

    def get_document(self, document_id: str) -> Document | None:
        with self._session() as s:
            row = s.get(DocumentRow, document_id)
            return _to_document(row) if row else None

    def get_documents(self, document_ids: list[str]) -> dict[str, Document]:
        """Fetch many documents in a single query, keyed by id."""
        if not document_ids:
            return {}
        with self._session() as s:
            rows = s.scalars(select(DocumentRow).where(DocumentRow.id.in_(document_ids))).all()
            return {r.id: _to_document(r) for r in rows}

    def update_document(self, document_id: str, **values: Any) -> None:
        """Write the given columns; status may be a DocumentStatus."""
        values = _document_values(values)
        with self._session.begin() as s:
            result = s.execute(update(DocumentRow).where(DocumentRow.id == document_id).values(**values))
            if result.rowcount == 0:
                raise StorageError(f"Document not found: {document_id}")

    def transition_document(
        self,
        document_id: str,
        from_statuses: tuple[DocumentStatus, ...],
        **values: Any,
    ) -> bool:
        """Conditional update_document: writes only while the status is one of from_statuses.

        Returns False when the document has moved on, e.g. a deadline already
        marked it ``error``.
        """
        values = _document_values(values)
        allowed = [status.value for status in from_statuses]
        with self._session.begin() as s:
            result = s.execute(
                update(DocumentRow)
                .where(DocumentRow.id == document_id, DocumentRow.status.in_(allowed))
                .values(**values)
            )
            return result.rowcount == 1

    # -- unanswered questions --------------------------------------------------

    def add_question(
        self,
        tenant_id: str,
        question: str,
        embedding: list[float],
        session_id: str | None = None,
        user_id: str | None = None,
        created_at: datetime | None = None,
    ) -> UnansweredQuestion:
        with self._session.begin() as s:
            row = QuestionRow(
                tenant_id=tenant_id,
                question=question,
                embedding=list(embedding),
                session_id=session_id,
                user_id=user_id,
                created_at=created_at or utcnow(),
            )
            s.add(row)
            s.flush()
            return _to_question(row)

    def set_question_cluster(self, question_id: str, cluster_id: str) -> bool:
        """Attach a question to a cluster. Write-once: False if already set."""
        with self._session.begin() as s:
            result = s.execute(
                update(QuestionRow)
                .where(QuestionRow.id == question_id, QuestionRow.cluster_id.is_(None))
                .values(cluster_id=cluster_id)
            )
            return result.rowcount == 1

    def list_questions(self, tenant_id: str, limit: int = 200) -> list[UnansweredQuestion]:
        """Most recent questions of a tenant, newest first."""
        with self._session() as s:
            rows = s.scalars(
                select(QuestionRow)
                .where(QuestionRow.tenant_id == tenant_id)
                .order_by(QuestionRow.created_at.desc())
                .limit(limit)
            ).all()
            return [_to_question(r) for r in rows]

    def list_orphan_questions(self, tenant_id: str, limit: int = 500) -> list[UnansweredQuestion]:
        """Questions with no cluster reference, newest first."""
        with self._session() as s:
            rows = s.scalars(
                select(QuestionRow)
                .where(QuestionRow.tenant_id == tenant_id, QuestionRow.cluster_id.is_(None))
                .order_by(QuestionRow.created_at.desc())
                .limit(limit)
            ).all()
            return [_to_question(r) for r in rows]

    def list_cluster_questions(
        self,
        cluster_id: str,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[UnansweredQuestion]:
        with self._session() as s:
            order = QuestionRow.created_at.desc() if newest_first else QuestionRow.created_at.asc()
            stmt = select(QuestionRow).where(QuestionRow.cluster_id == cluster_id).order_by(order)
            if limit is not None:
                stmt = stmt.limit(limit)
            return [_to_question(r) for r in s.scalars(stmt).all()]

    # -- clusters --------------------------------------------------------------

    def match_nearest_cluster(
        self,
        tenant_id: str,
        embedding: list[float],
        similarity_threshold: float,
    ) -> tuple[QuestionCluster, float] | None:
        """Nearest cluster centroid of the tenant by cosine similarity.

        Returns (cluster, similarity) only when similarity >= threshold.
        Exact brute-force scan; tenants hold at most a few thousand clusters.
        """
        with self._session() as s:
            rows = s.scalars(
                select(ClusterRow)
                .where(ClusterRow.tenant_id == tenant_id)
                .order_by(ClusterRow.first_seen_at, ClusterRow.id)
            ).all()
            if not rows:
                return None

            centroids = np.array([r.centroid for r in rows], dtype=float)
            query = np.asarray(embedding, dtype=float)
            norms = np.linalg.norm(centroids, axis=1) * np.linalg.norm(query)
            dots = centroids @ query
            sims = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

            best = int(np.argmax(sims))
            if sims[best] < similarity_threshold:
                return None
            return _to_cluster(rows[best]), float(sims[best])

    def create_cluster(
        self,
        tenant_id: str,
        centroid: list[float],
        question_count: int,
        priority_score: float,
        first_seen_at: datetime,
        last_seen_at: datetime,
        label: str | None = None,
    ) -> QuestionCluster:
        with self._session.begin() as s:
            row = ClusterRow(
                tenant_id=tenant_id,
                centroid=list(centroid),
                question_count=question_count,
                priority_score=priority_score,
                first_seen_at=first_seen_at,
                last_seen_at=last_seen_at,
                label=label,
            )
            s.add(row)
            s.flush()
            return _to_cluster(row)

    def update_cluster_assignment(
        self,
        cluster_id: str,
        centroid: list[float],
        question_count: int,
        priority_score: float,
        last_seen_at: datetime,
    ) -> None:
        """Write the new running state of a cluster in one statement."""
        with self._session.begin() as s:
            result = s.execute(
                update(ClusterRow)
                .where(ClusterRow.id == cluster_id)
                .values(
                    centroid=list(centroid),
                    question_count=question_count,
                    priority_score=priority_score,
                    last_seen_at=last_seen_at,
                )
            )
            if result.rowcount == 0:
                raise StorageError(f"Cluster not found: {cluster_id}")

    def claim_alert(self, cluster_id: str, sent_at: datetime | None = None) -> QuestionCluster | None:
        """Set alert_sent_at only if it is still null.

        Returns the cluster when this call won, None when the alert was
        already claimed (or the cluster does not exist).
        """
        with self._session.begin() as s:
            result = s.execute(
                update(ClusterRow)
                .where(ClusterRow.id == cluster_id, ClusterRow.alert_sent_at.is_(None))
                .values(alert_sent_at=sent_at or utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            row = s.get(ClusterRow, cluster_id)
            return _to_cluster(row)

    def set_cluster_label(self, cluster_id: str, label: str) -> None:
        with self._session.begin() as s:
            s.execute(update(ClusterRow).where(ClusterRow.id == cluster_id).values(label=label))

    def get_cluster(self, cluster_id: str) -> QuestionCluster | None:
        with self._session() as s:
            row = s.get(ClusterRow, cluster_id)
            return _to_cluster(row) if row else None

    def list_clusters(self, tenant_id: str) -> list[QuestionCluster]:
        """Clusters of a tenant, highest priority first."""
        with self._session() as s:
            rows = s.scalars(
                select(ClusterRow)
                .where(ClusterRow.tenant_id == tenant_id)
                .order_by(ClusterRow.priority_score.desc(), ClusterRow.first_seen_at)
            ).all()
            return [_to_cluster(r) for r in rows]

    # -- notifications ---------------------------------------------------------

    def add_notifications(self, notifications: list[Notification]) -> None:
        with self._session.begin() as s:
            s.add_all([
                NotificationRow(
                    tenant_id=n.tenant_id,
                    user_id=n.user_id,
                    type=n.type,
                    title=n.title,
                    body=n.body,
                    link=n.link,
                )
                for n in notifications
            ])

    def list_notifications(self, tenant_id: str, user_id: str | None = None) -> list[Notification]:
        with self._session() as s:
            stmt = select(NotificationRow).where(NotificationRow.tenant_id == tenant_id)
            if user_id:
                stmt = stmt.where(NotificationRow.user_id == user_id)
            rows = s.scalars(stmt.order_by(NotificationRow.created_at)).all()
            return [
                Notification(
                    id=r.id,
                    tenant_id=r.tenant_id,
                    user_id=r.user_id,
                    type=r.type,
                    title=r.title,
                    body=r.body,
                    link=r.link,
                    created_at=r.created_at,
                )
                for r in rows
            ]
