"""Plain text parser."""

from typing import Any


class TextParser:
    """UTF-8 text passed through as-is; a leading byte-order mark is dropped."""

    def parse(self, data: bytes) -> dict[str, Any]:
        return {
            "content": data.decode("utf-8-sig", errors="replace"),
            "metadata": {"source_type": "text"},
        }
