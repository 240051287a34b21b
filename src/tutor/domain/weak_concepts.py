"""
Weak-concept statistics.

Pure functions over an already-fetched answer history. Adapters that can
aggregate in the database (SQLite) hand pre-computed tallies straight to
``rank_weak_concepts``; adapters that only return raw answers (Supabase)
go through ``tally_answers`` first.
"""

import logging
from collections.abc import Iterable, Mapping

from src.tutor.domain.models import AnswerRecord, Concept, ConceptTally, WeakConcept

logger = logging.getLogger(__name__)


def tally_answers(answers: Iterable[AnswerRecord]) -> list[ConceptTally]:
    """
    Groups answers by concept. ``total_questions`` counts attempts, so a
    concept answered wrongly twice on the same question still satisfies
    ``incorrect_count <= total_questions``.
    """
    totals: dict[str, int] = {}
    incorrect: dict[str, int] = {}

    for answer in answers:
        totals[answer.concept_id] = totals.get(answer.concept_id, 0) + 1
        if not answer.is_correct:
            incorrect[answer.concept_id] = incorrect.get(answer.concept_id, 0) + 1

    return [
        ConceptTally(
            concept_id=concept_id,
            total_questions=total,
            incorrect_count=incorrect.get(concept_id, 0),
        )
        for concept_id, total in sorted(totals.items())
    ]


def rank_weak_concepts(
    tallies: Iterable[ConceptTally], concepts: Mapping[str, Concept]
) -> list[WeakConcept]:
    """
    Keeps concepts with at least one incorrect answer, most-missed first.

    Ties are broken by concept id so the same history always ranks the same
    way. Tallies pointing at a concept missing from ``concepts`` are skipped.
    """
    weak: list[WeakConcept] = []

    for tally in tallies:
        if tally.incorrect_count <= 0:
            continue

        concept = concepts.get(tally.concept_id)
        if concept is None:
            logger.warning(
                "Skipping dangling concept reference in answer history: %s",
                tally.concept_id,
            )
            continue

        weak.append(
            WeakConcept(
                concept=concept,
                total_questions=tally.total_questions,
                incorrect_count=tally.incorrect_count,
            )
        )

    weak.sort(key=lambda w: (-w.incorrect_count, w.concept.id))
    return weak


def priority_map(weak_concepts: Iterable[WeakConcept]) -> dict[str, int]:
    return {w.concept.id: w.incorrect_count for w in weak_concepts}
