"""System prompt assembly and the follow-up answer format."""

import re
from dataclasses import dataclass, field
from datetime import date, datetime

from ..models import RetrievedChunk

FOLLOW_UP_MARKER = "---FOLLOW_UPS---"
ANNOUNCEMENT_MAX_CHARS = 500
_NUMBERING = re.compile(r"^\d+[.)]\s*")

_INTRO = (
    "You are a helpful assistant that answers questions using official "
    "documents, events, and announcements."
)

FOLLOW_UP_INSTRUCTION = f"""After your answer, ALWAYS add exactly 3 follow-up questions the user might ask next. Format them EXACTLY like this (on new lines after your answer):

{FOLLOW_UP_MARKER}
1. First follow-up question?
2. Second follow-up question?
3. Third follow-up question?"""

CLARIFICATION_RULES = """DIVISION/GROUP CLARIFICATION:
- Documents may apply to different divisions or groups (e.g., grade levels, departments, sites). Use document tags, categories, folders, and titles to tell which group a document applies to.
- If the retrieved documents contain CONFLICTING information that appears to apply to different groups, ask a brief clarifying question before answering (e.g., "I found different policies for elementary and middle school. Which one are you asking about?").
- If household members are listed above, use their grade or group to pick the most relevant documents. With only one member, assume the question is about that member unless told otherwise.
- If household members belong to different groups and the answer differs between them, mention the differences or ask which one the question is about.
- Do NOT ask for clarification when the answer is the same across all groups, when only one group's documents were found, or when the question is clearly unambiguous."""


@dataclass
class EventContext:
    title: str
    date: str
    event_type: str = "general"
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None
    description: str | None = None


@dataclass
class AnnouncementContext:
    title: str
    content: str
    priority: str = "normal"
    pinned: bool = False


@dataclass
class HouseholdMember:
    name: str
    grade: str


@dataclass
class ParsedAnswer:
    """Model output split into the answer shown to the user and its follow-ups."""
    content: str
    follow_ups: list[str] = field(default_factory=list)


def format_events_context(events: list[EventContext]) -> str:
    if not events:
        return ""
    lines = []
    for e in events:
        parts = [f'- "{e.title}" on {e.date}']
        if e.start_time:
            parts.append(f"from {e.start_time}")
            if e.end_time:
                parts.append(f"to {e.end_time}")
        if e.location:
            parts.append(f"at {e.location}")
        line = " ".join(parts) + f" ({e.event_type})"
        if e.description:
            line += f": {e.description}"
        lines.append(line)
    return "EVENTS (upcoming and recent):\n" + "\n".join(lines)


def format_announcements_context(announcements: list[AnnouncementContext]) -> str:
    """Pinned and non-normal priority announcements are tagged; long content is cut."""
    if not announcements:
        return ""
    lines = []
    for a in announcements:
        tags = []
        if a.pinned:
            tags.append("PINNED")
        if a.priority != "normal":
            tags.append(a.priority.upper())
        prefix = f"[{', '.join(tags)}] " if tags else ""
        content = a.content
        if len(content) > ANNOUNCEMENT_MAX_CHARS:
            content = content[:ANNOUNCEMENT_MAX_CHARS] + "..."
        lines.append(f'- {prefix}"{a.title}": {content}')
    return "ANNOUNCEMENTS (active):\n" + "\n".join(lines)


def format_household_context(members: list[HouseholdMember]) -> str:
    if not members:
        return ""
    return "HOUSEHOLD MEMBERS:\n" + "\n".join(f"- {m.name} ({m.grade})" for m in members)


def today_string(today: date | None = None) -> str:
    """``"Today's date is Friday, October 16, 2026."``"""
    today = today or datetime.now().date()
    return f"Today's date is {today.strftime('%A, %B')} {today.day}, {today.year}."


def _format_chunk(number: int, chunk: RetrievedChunk) -> str:
    meta = []
    if chunk.document_tags:
        meta.append(f"Tags: {', '.join(chunk.document_tags)}")
    if chunk.document_category:
        meta.append(f"Category: {chunk.document_category}")
    if chunk.document_folder:
        meta.append(f"Folder: {chunk.document_folder}")
    meta_str = f" | {' | '.join(meta)}" if meta else ""
    return f'[Source {number}: "{chunk.document_title}"{meta_str}]\n{chunk.content}'


def build_system_prompt(
    chunks: list[RetrievedChunk],
    events_context: str = "",
    announcements_context: str = "",
    household_context: str = "",
    today: str = "",
) -> str:
    """Build the system prompt for answering one question.

    Args:
        chunks: Retrieved chunks, most relevant first; numbered from 1.
        events_context: Output of format_events_context, or "".
        announcements_context: Output of format_announcements_context, or "".
        household_context: Output of format_household_context, or "".
        today: Output of today_string, or "".

    Returns:
        The prompt text. Without chunks and without events or announcements
        the model is told that nothing relevant was found.
    """
    date_info = f"\n{today}\n" if today else ""
    has_additional = bool(events_context or announcements_context)

    if not chunks and not has_additional:
        return (
            f"{_INTRO}\n{date_info}\n"
            "No relevant information was found for this question. Let the user know that "
            "you couldn't find specific information in the documents, events, or announcements, "
            "and suggest they contact the organization directly for more details. "
            "Be friendly and helpful.\n\n"
            f"{FOLLOW_UP_INSTRUCTION}"
        )

    context_parts = []
    if chunks:
        context_parts.append(
            "DOCUMENT CONTEXT:\n"
            + "\n\n---\n\n".join(_format_chunk(i, c) for i, c in enumerate(chunks, 1))
        )
    context_parts.extend(p for p in (events_context, announcements_context, household_context) if p)
    context_block = "\n\n".join(context_parts)

    no_docs_note = ""
    if not chunks and has_additional:
        no_docs_note = (
            "- No matching documents were found, but the events and/or announcements "
            "below may contain the answer. Use them.\n"
        )

    citation_rules = (
        "- Answer in your own words. Do NOT quote documents word-for-word. "
        "Paraphrase and summarize the information naturally.\n"
        "- Do NOT use [Source N] citations or any inline citation markers. "
        "The sources will be displayed automatically alongside your answer.\n"
    )

    return (
        f"{_INTRO}\n{date_info}\n"
        f"{context_block}\n\n"
        "IMPORTANT RULES:\n"
        "- Answer based on ALL the provided context above (documents, events, and announcements)\n"
        f"{no_docs_note}"
        "- If the context doesn't contain enough information to answer, say so honestly\n"
        f"{citation_rules}"
        "- Be concise and friendly in your responses\n"
        "- If a question is not related to the organization, politely redirect\n\n"
        f"{CLARIFICATION_RULES}\n"
        f"- {FOLLOW_UP_INSTRUCTION}"
    )


def parse_follow_ups(text: str) -> ParsedAnswer:
    """Split a model reply at FOLLOW_UP_MARKER.

    Without the marker the whole text is the answer and there are no
    follow-ups. Otherwise list numbering (``1.`` or ``1)``) is stripped and
    at most three non-empty lines are kept.
    """
    marker = text.find(FOLLOW_UP_MARKER)
    if marker == -1:
        return ParsedAnswer(content=text)

    content = text[:marker].rstrip()
    block = text[marker + len(FOLLOW_UP_MARKER):].strip()
    follow_ups = [
        line for line in (_NUMBERING.sub("", raw).strip() for raw in block.split("\n")) if line
    ]
    return ParsedAnswer(content=content, follow_ups=follow_ups[:3])
