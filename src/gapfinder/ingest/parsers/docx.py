"""DOCX file parser."""

import io
from typing import Any


class DocxParser:
    """Parse DOCX buffers using python-docx."""

    def parse(self, data: bytes) -> dict[str, Any]:
        from docx import Document

        doc = Document(io.BytesIO(data))
        paragraphs = [p.text for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [c.text.strip() for c in row.cells if c.text.strip()]
                if cells:
                    paragraphs.append(" | ".join(cells))
        content = "\n\n".join(paragraphs)

        return {
            "content": content,
            "metadata": {"source_type": "docx"},
        }
