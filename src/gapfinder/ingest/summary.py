"""Short document summaries for the document list."""

from ..llm import TextGenerator
from ..prompts import SUMMARY_PROMPT

SUMMARY_MAX_CHARS = 8000


def generate_summary(
    generator: TextGenerator,
    text: str,
    title: str,
    max_chars: int = SUMMARY_MAX_CHARS,
) -> str:
    """Summarize a document in two or three sentences."""
    truncated = text if len(text) <= max_chars else text[:max_chars] + "..."
    prompt = SUMMARY_PROMPT.format(title=title, content=truncated)
    summary = generator.generate(prompt, max_tokens=150, temperature=0.3)
    return summary.strip()
