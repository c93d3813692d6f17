"""Data models used throughout gapfinder."""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class DocumentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


@dataclass
class Document:
    """An uploaded file and its processing state."""
    id: str
    tenant_id: str
    title: str
    file_name: str
    file_type: str
    file_path: str
    file_size: int = 0
    status: DocumentStatus = DocumentStatus.PENDING
    error_message: str | None = None
    summary: str | None = None
    chunk_count: int = 0
    text_path: str | None = None
    pdf_path: str | None = None
    tags: list[str] = field(default_factory=list)
    category: str | None = None
    folder: str | None = None


@dataclass
class Chunk:
    """A chunk of text from a document."""
    content: str
    index: int
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChunkRecord:
    """A chunk ready to be written to a vector store."""
    document_id: str
    tenant_id: str
    index: int
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChunkMatch:
    """A raw nearest-neighbour hit from a vector store."""
    id: str
    document_id: str
    index: int
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RetrievedChunk:
    """A search hit enriched with its owning document's metadata."""
    id: str
    document_id: str
    index: int
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)
    document_title: str = "Unknown Document"
    document_file_path: str | None = None
    document_file_type: str | None = None
    document_tags: list[str] = field(default_factory=list)
    document_category: str | None = None
    document_folder: str | None = None


@dataclass
class Source:
    """A citation shown next to an answer."""
    document_id: str
    title: str
    excerpt: str
    similarity: float
    chunk_index: int
    source_number: int
    file_path: str | None = None
    file_type: str | None = None


@dataclass
class UnansweredQuestion:
    """A question retrieval could not ground in any document."""
    id: str
    tenant_id: str
    question: str
    embedding: list[float]
    created_at: datetime
    cluster_id: str | None = None
    session_id: str | None = None
    user_id: str | None = None


@dataclass
class QuestionCluster:
    """A persistent group of similar unanswered questions."""
    id: str
    tenant_id: str
    centroid: list[float]
    question_count: int
    priority_score: float
    first_seen_at: datetime
    last_seen_at: datetime
    label: str | None = None
    alert_sent_at: datetime | None = None


@dataclass
class ClusterAssignment:
    """Outcome of assigning one question to a persistent cluster."""
    cluster_id: str
    crossed_threshold: bool
    created: bool = False


@dataclass
class QuestionGroup:
    """A group produced by offline clustering."""
    questions: list[UnansweredQuestion]
    label: str | None = None


@dataclass
class GapReport:
    """One row of the knowledge-gap report shown to operators."""
    label: str
    count: int
    questions: list[UnansweredQuestion]
    oldest: datetime
    newest: datetime
    priority_score: float
    cluster_id: str | None = None


@dataclass
class Tenant:
    id: str
    name: str
    slug: str | None = None


@dataclass
class Operator:
    id: str
    tenant_id: str
    email: str | None = None
    name: str | None = None


@dataclass
class Notification:
    """An in-app notification for one operator."""
    tenant_id: str
    user_id: str
    type: str
    title: str
    body: str
    link: str
    id: str | None = None
    created_at: datetime | None = None


@dataclass
class StepWarning:
    """A non-fatal ingestion step that was skipped."""
    step: str
    message: str


@dataclass
class IngestionReport:
    """Result of processing one document."""
    document_id: str
    status: DocumentStatus
    chunk_count: int = 0
    summary: str | None = None
    text_path: str | None = None
    pdf_path: str | None = None
    warnings: list[StepWarning] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)
