"""Document processing pipeline - the heart of ingestion.

    extract -> (convert to PDF) -> (save .txt) -> chunk -> embed + store -> (summary) -> ready

Steps in parentheses are optional: a failure there is logged, recorded on
the IngestionReport and skipped. Any other failure marks the document as
``error``, removes whatever chunks the run had stored, and propagates.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..embeddings.embedder import Embedder
from ..errors import IngestionCancelled, IngestionError, IngestionTimeout, StorageError
from ..llm import TextGenerator
from ..models import ChunkRecord, Document, DocumentStatus, IngestionReport, StepWarning
from ..storage.base import VectorStoreBase
from ..storage.files import LocalFileStore, sibling_path
from ..storage.records import RecordStore
from .chunker import split_text_into_chunks
from .converter import convert_to_pdf
from .extractor import extract_text, file_type_for
from .summary import SUMMARY_MAX_CHARS, generate_summary

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 5
# Types that are already viewable and never go through the converter
_NO_CONVERSION = {"pdf", "txt", "text", "md", "markdown", "html", "htm", "csv", "log"}

T = TypeVar("T")


class DocumentProcessor:
    """Runs the ingestion pipeline for one document at a time.

    Instances hold no per-document state, so one processor can serve
    concurrent jobs for different documents.
    """

    def __init__(
        self,
        records: RecordStore,
        vectors: VectorStoreBase,
        files: LocalFileStore,
        embedder: Embedder,
        generator: TextGenerator | None = None,
        config: dict[str, Any] | None = None,
        converter: Callable[[bytes, str], bytes | None] = convert_to_pdf,
    ):
        config = config or {}
        chunk_cfg = config.get("chunking", {})
        ingest_cfg = config.get("ingestion", {})
        self.records = records
        self.vectors = vectors
        self.files = files
        self.embedder = embedder
        self.generator = generator
        self.converter = converter
        self.chunk_size = chunk_cfg.get("chunk_size", 1000)
        self.overlap = chunk_cfg.get("overlap", 200)
        self.insert_batch_size = ingest_cfg.get("insert_batch_size", INSERT_BATCH_SIZE)
        self.summary_max_chars = ingest_cfg.get("summary_max_chars", SUMMARY_MAX_CHARS)

    def process(self, document_id: str, cancel: threading.Event | None = None) -> IngestionReport:
        """Process a stored document into searchable chunks.

        Args:
            document_id: Document to (re)process.
            cancel: Set by a caller that gave up on this run; checked between
                steps. Once set the run stores nothing more and ends with
                IngestionCancelled.

        Returns:
            IngestionReport with status READY and any skipped optional steps.

        Raises:
            Whatever fatal error stopped the pipeline, after the document
            has been marked ``error`` and its chunks removed.
        """
        try:
            return self._run(document_id, cancel)
        except IngestionCancelled as e:
            logger.warning("Processing of %s cancelled: %s", document_id, e)
            self._discard_chunks(document_id)
            self._mark_error(document_id, str(e), only_if_processing=True)
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error("Processing failed for %s: %s", document_id, message)
            self._discard_chunks(document_id)
            self._mark_error(document_id, message)
            raise

    def _run(self, document_id: str, cancel: threading.Event | None) -> IngestionReport:
        doc = self.records.get_document(document_id)
        if doc is None:
            raise StorageError(f"Document not found: {document_id}")

        _check_cancelled(cancel)
        self.records.update_document(document_id, status=DocumentStatus.PROCESSING, error_message=None)
        report = IngestionReport(document_id=document_id, status=DocumentStatus.PROCESSING)
        logger.info("Processing %s (%s, %s)", document_id, doc.file_name, doc.file_type)

        data = self.files.read(doc.file_path)
        logger.debug("Loaded %d bytes for %s", len(data), document_id)

        text = extract_text(data, doc.file_type)
        if not text or not text.strip():
            raise IngestionError("No text could be extracted from the document")

        if doc.file_type.lower() not in _NO_CONVERSION:
            report.pdf_path = self._optional_step(report, "convert", lambda: self._convert(doc, data))
        del data

        text_path = sibling_path(doc.file_path, "txt")
        if text_path == doc.file_path:
            report.text_path = text_path
        else:
            report.text_path = self._optional_step(
                report, "text_artifact",
                lambda: self.files.write(text_path, text.encode("utf-8")),
            )

        chunks = list(split_text_into_chunks(text, self.chunk_size, self.overlap))
        if not chunks:
            raise IngestionError("Chunking produced no chunks")
        logger.info("%d chunks created for %s", len(chunks), document_id)

        report.chunk_count = self._store_chunks(doc, chunks, cancel)

        if self.generator is not None:
            report.summary = self._optional_step(
                report, "summary",
                lambda: generate_summary(self.generator, text, doc.title, self.summary_max_chars),
            )

        _check_cancelled(cancel)
        finished = self.records.transition_document(
            document_id,
            (DocumentStatus.PROCESSING,),
            status=DocumentStatus.READY,
            chunk_count=report.chunk_count,
            summary=report.summary,
            **({"text_path": report.text_path} if report.text_path else {}),
            **({"pdf_path": report.pdf_path} if report.pdf_path else {}),
        )
        if not finished:
            raise IngestionCancelled("Document left processing before the run finished")
        report.status = DocumentStatus.READY
        logger.info("Done: %s (%d chunks, %d warnings)", document_id, report.chunk_count, len(report.warnings))
        return report

    def _convert(self, doc: Document, data: bytes) -> str | None:
        pdf = self.converter(data, doc.file_type)
        if pdf is None:
            return None
        return self.files.write(sibling_path(doc.file_path, "pdf"), pdf)

    def _store_chunks(self, doc: Document, chunks, cancel: threading.Event | None = None) -> int:
        """Replace the document's chunk set, embedding in fixed-size batches."""
        self.vectors.delete_document_chunks(doc.id)

        total = 0
        batches = (len(chunks) + self.insert_batch_size - 1) // self.insert_batch_size
        for batch_num, i in enumerate(range(0, len(chunks), self.insert_batch_size), 1):
            _check_cancelled(cancel)
            batch = chunks[i:i + self.insert_batch_size]
            logger.debug("Embedding batch %d/%d for %s", batch_num, batches, doc.id)
            embeddings = self.embedder.embed_batch([c.content for c in batch])
            _check_cancelled(cancel)
            self.vectors.add_chunks([
                ChunkRecord(
                    document_id=doc.id,
                    tenant_id=doc.tenant_id,
                    index=c.index,
                    content=c.content,
                    embedding=embeddings[j],
                    metadata=c.metadata,
                )
                for j, c in enumerate(batch)
            ])
            total += len(batch)
        return total

    @staticmethod
    def _optional_step(report: IngestionReport, step: str, fn: Callable[[], T]) -> T | None:
        try:
            return fn()
        except Exception as e:
            logger.warning("%s step failed for %s (non-fatal): %s", step, report.document_id, e)
            report.warnings.append(StepWarning(step=step, message=str(e)))
            return None

    def _discard_chunks(self, document_id: str) -> None:
        try:
            self.vectors.delete_document_chunks(document_id)
        except Exception as e:
            logger.error("Could not remove chunks of failed document %s: %s", document_id, e)

    def _mark_error(self, document_id: str, message: str, only_if_processing: bool = False) -> bool:
        """Returns False when the status was not written."""
        try:
            if only_if_processing:
                return self.records.transition_document(
                    document_id,
                    (DocumentStatus.PENDING, DocumentStatus.PROCESSING),
                    status=DocumentStatus.ERROR,
                    error_message=message,
                )
            self.records.update_document(document_id, status=DocumentStatus.ERROR, error_message=message)
            return True
        except StorageError:
            logger.error("Could not mark %s as failed: document record missing", document_id)
            return False


def _check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise IngestionCancelled("Processing cancelled after the deadline")


def process_with_timeout(processor: DocumentProcessor, document_id: str, timeout: float) -> IngestionReport:
    """Run processor.process with a wall-clock deadline.

    On timeout the document is marked ``error`` and IngestionTimeout is
    raised. The worker thread cannot be interrupted; it is told to stop at
    its next step, stores nothing after that, and removes the chunks it
    stored. If the worker finished in the same instant, its result stands.
    """
    cancel = threading.Event()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ingest")
    future = executor.submit(processor.process, document_id, cancel)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        cancel.set()
        message = f"Processing exceeded {timeout:g}s"
        if not processor._mark_error(document_id, message, only_if_processing=True):
            # the worker already reached a final status
            return future.result()
        logger.error("%s: %s", document_id, message)
        raise IngestionTimeout(message) from None
    finally:
        executor.shutdown(wait=False)


def ingest_file(
    processor: DocumentProcessor,
    file_path: Path,
    tenant_id: str,
    title: str | None = None,
    tags: list[str] | None = None,
    category: str | None = None,
    folder: str | None = None,
) -> IngestionReport:
    """Store a local file, register it as a pending document and process it."""
    file_type = file_type_for(file_path.name)
    data = file_path.read_bytes()
    stored = processor.files.write(f"{tenant_id}/{file_path.name}", data)
    doc = processor.records.create_document(
        tenant_id=tenant_id,
        title=title or file_path.stem,
        file_name=file_path.name,
        file_type=file_type,
        file_path=stored,
        file_size=len(data),
        tags=tags,
        category=category,
        folder=folder,
    )
    return processor.process(doc.id)
