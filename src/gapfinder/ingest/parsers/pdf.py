"""PDF parser."""

import io
import re
from typing import Any

# "exam-\nple" left by line wrapping
_HYPHEN_BREAK = re.compile(r"(\w)-\n(\w)")
# Single newline inside a paragraph, unless the next line starts a list item
_SOFT_BREAK = re.compile(r"(?<!\n)\n(?![\n\-*•]|\d+[.)]\s)")
_SPACES = re.compile(r"[ \t]+")


class PdfParser:
    """Text layer of a PDF, page by page, using pypdf.

    Scanned PDFs without a text layer come back empty.
    """

    def parse(self, data: bytes) -> dict[str, Any]:
        from pypdf import PdfReader

        reader = PdfReader(io.BytesIO(data))
        pages = [unwrap_lines(page.extract_text() or "") for page in reader.pages]
        return {
            "content": "\n\n".join(p for p in pages if p),
            "metadata": {"source_type": "pdf", "page_count": len(reader.pages)},
        }


def unwrap_lines(text: str) -> str:
    """Join the hard line breaks pypdf keeps from the page layout."""
    text = _HYPHEN_BREAK.sub(r"\1\2", text.strip())
    text = _SOFT_BREAK.sub(" ", text)
    return _SPACES.sub(" ", text)
