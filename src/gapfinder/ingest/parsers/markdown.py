"""Markdown parser."""

import logging
import re
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_FRONTMATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


class MarkdownParser:
    """Markdown source with any YAML frontmatter moved out of the text."""

    def parse(self, data: bytes) -> dict[str, Any]:
        text = data.decode("utf-8-sig", errors="replace")
        metadata: dict[str, Any] = {"source_type": "markdown"}

        match = _FRONTMATTER.match(text)
        if match is None:
            return {"content": text, "metadata": metadata}

        try:
            frontmatter = yaml.safe_load(match.group(1))
        except yaml.YAMLError as e:
            logger.warning("Ignoring malformed frontmatter: %s", e)
        else:
            if isinstance(frontmatter, dict):
                metadata["frontmatter"] = frontmatter
        return {"content": text[match.end():], "metadata": metadata}
