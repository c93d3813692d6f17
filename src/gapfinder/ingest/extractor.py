"""Turn a stored file buffer into plain text."""

import logging
from pathlib import PurePath
from typing import Any

from ..errors import ExtractionError
from .parsers import PARSERS

logger = logging.getLogger(__name__)


def file_type_for(name: str) -> str:
    """File type tag for a file name, e.g. ``"Handbook.PDF"`` -> ``"pdf"``."""
    return PurePath(name).suffix.lower().lstrip(".")


def is_supported(file_type: str) -> bool:
    return file_type.lower() in PARSERS


def parse_file(data: bytes, file_type: str) -> dict[str, Any]:
    """Run the parser registered for file_type.

    Returns the parser's dict with ``content`` and ``metadata``.

    Raises:
        ExtractionError: unknown type or the parser failed.
    """
    parser_cls = PARSERS.get(file_type.lower())
    if parser_cls is None:
        raise ExtractionError(f"Unsupported file type: {file_type!r}")

    try:
        return parser_cls().parse(data)
    except Exception as e:
        raise ExtractionError(f"Could not extract text from {file_type} file: {e}") from e


def extract_text(data: bytes, file_type: str) -> str:
    """Extract plain text from a buffer of the given type."""
    result = parse_file(data, file_type)
    text = result.get("content") or ""
    logger.debug("Extracted %d chars from %s buffer", len(text), file_type)
    return text
