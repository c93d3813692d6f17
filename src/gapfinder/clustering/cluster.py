"""Batch agglomerative clustering of unanswered questions."""

import logging

import numpy as np

from ..models import QuestionGroup, UnansweredQuestion

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.82
MAX_BATCH_QUESTIONS = 500


def cosine_similarity(a, b) -> float:
    """Cosine similarity of two equal-length vectors; 0.0 if either is all zeros."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Vector lengths differ: {a.shape[0]} != {b.shape[0]}")
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)


def similarity_matrix(embeddings) -> np.ndarray:
    """Pairwise cosine similarity; rows of zeros compare as 0.0 to everything."""
    m = np.asarray(embeddings, dtype=float)
    norms = np.linalg.norm(m, axis=1)
    safe = np.where(norms == 0, 1.0, norms)
    unit = m / safe[:, None]
    unit[norms == 0] = 0.0
    return unit @ unit.T


def cluster_questions(
    questions: list[UnansweredQuestion],
    similarity_threshold: float = SIMILARITY_THRESHOLD,
    max_questions: int = MAX_BATCH_QUESTIONS,
) -> list[QuestionGroup]:
    """Group questions by embedding similarity.

    Greedy agglomerative merge: repeatedly join the two groups holding the
    most similar pair of questions (first pair in input order wins ties)
    while that similarity is >= similarity_threshold.

    Args:
        questions: Questions with equal-width embeddings.
        similarity_threshold: Minimum pair similarity for a merge.
        max_questions: Upper bound on input size; the pairwise matrix is O(n^2).

    Returns:
        Groups ordered by size, largest first; equal sizes keep input order.

    Raises:
        ValueError: more than max_questions questions.
    """
    n = len(questions)
    if n > max_questions:
        raise ValueError(f"Too many questions to cluster in one batch: {n} > {max_questions}")
    if n == 0:
        return []
    if n == 1:
        return [QuestionGroup(questions=list(questions))]

    sim = similarity_matrix([q.embedding for q in questions])
    # Only i < j pairs are candidates
    candidates = np.triu(np.ones((n, n), dtype=bool), k=1)
    assignment = np.arange(n)

    merges = 0
    while True:
        same_group = assignment[:, None] == assignment[None, :]
        masked = np.where(candidates & ~same_group, sim, -np.inf)
        flat = int(np.argmax(masked))
        i, j = divmod(flat, n)
        best = masked[i, j]
        if not np.isfinite(best) or best < similarity_threshold:
            break
        assignment[assignment == assignment[j]] = assignment[i]
        merges += 1

    groups: dict[int, list[UnansweredQuestion]] = {}
    for idx, group_id in enumerate(assignment):
        groups.setdefault(int(group_id), []).append(questions[idx])

    result = sorted(groups.values(), key=len, reverse=True)
    logger.debug("Clustered %d questions into %d groups (%d merges)", n, len(result), merges)
    return [QuestionGroup(questions=qs) for qs in result]
