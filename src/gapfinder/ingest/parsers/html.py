"""HTML parser."""

from typing import Any

SKIP_TAGS = ["script", "style", "noscript", "template", "nav", "footer"]


class HtmlParser:
    """Visible body text of an HTML page using BeautifulSoup with lxml."""

    def parse(self, data: bytes) -> dict[str, Any]:
        from bs4 import BeautifulSoup

        soup = BeautifulSoup(data, "lxml")
        for tag in soup(SKIP_TAGS):
            tag.decompose()

        metadata: dict[str, Any] = {"source_type": "html"}
        if soup.title and soup.title.string:
            metadata["html_title"] = soup.title.string.strip()

        body = soup.body or soup
        lines = (line.strip() for line in body.get_text("\n").splitlines())
        return {"content": "\n".join(line for line in lines if line), "metadata": metadata}
