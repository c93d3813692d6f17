"""Topic labels for groups of unanswered questions."""

import logging

from ..llm import TextGenerator
from ..models import QuestionGroup
from ..prompts import CLUSTER_LABEL_PROMPT

logger = logging.getLogger(__name__)


def _describe(groups: list[QuestionGroup]) -> str:
    blocks = []
    for i, group in enumerate(groups, 1):
        lines = "\n".join(f'  - "{q.question}"' for q in group.questions)
        blocks.append(f"Cluster {i} ({len(group.questions)} questions):\n{lines}")
    return "\n\n".join(blocks)


def label_groups(groups: list[QuestionGroup], generator: TextGenerator | None) -> list[QuestionGroup]:
    """Set ``label`` on every group in place and return the groups.

    Multi-question groups are labelled in a single generation request, one
    label per line in order. Singletons, groups left without a label line,
    and every group when generation is unavailable or fails fall back to
    their first question's text.
    """
    multi = [g for g in groups if len(g.questions) > 1]

    labels: list[str] = []
    if multi and generator is not None:
        try:
            text = generator.generate(
                CLUSTER_LABEL_PROMPT.format(clusters=_describe(multi)),
                max_tokens=200,
                temperature=0.2,
            )
            labels = [line.strip() for line in text.strip().split("\n") if line.strip()]
        except Exception as e:
            logger.warning("Cluster labelling failed, using first questions: %s", e)

    label_iter = iter(labels)
    for group in groups:
        label = next(label_iter, None) if len(group.questions) > 1 else None
        group.label = label or group.questions[0].question
    return groups
