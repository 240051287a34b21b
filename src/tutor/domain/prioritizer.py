import random
from collections.abc import Mapping, Sequence

from src.tutor.domain.models import QuestionWithConcept


def prioritize_questions(
    pool: Sequence[QuestionWithConcept],
    priorities: Mapping[str, int] | None,
    rng: random.Random | None = None,
) -> list[QuestionWithConcept]:
    """
    Orders a question pool so that concepts with more incorrect answers
    come first.

    Args:
        pool: Every candidate question of a document.
        priorities: concept_id -> incorrect_count. Missing concepts score 0.
            ``None`` means there is no learner at all; the pool is returned
            in its original order.
        rng: Source of the per-call shuffle inside equal-score groups.
            Defaults to the module-level generator.

    Returns:
        A permutation of ``pool``.

    Example:
        >>> prioritize_questions([a1, b1, a2], {"A": 2})
        >>> # [a1, a2, b1] or [a2, a1, b1]
    """
    if priorities is None:
        return list(pool)

    groups: dict[int, list[QuestionWithConcept]] = {}
    for item in pool:
        score = priorities.get(item.concept_id, 0)
        groups.setdefault(score, []).append(item)

    shuffle = rng.shuffle if rng is not None else random.shuffle
    ordered: list[QuestionWithConcept] = []
    for score in sorted(groups, reverse=True):
        group = groups[score]
        shuffle(group)
        ordered.extend(group)

    return ordered
