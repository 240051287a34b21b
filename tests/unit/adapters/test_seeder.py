import json
from pathlib import Path

import pytest

from src.tutor.adapters.seeder import DataSeeder

BUNDLED_DEMO = Path(__file__).parents[3] / "data" / "demo_document.json"

DEMO = {
    "file_name": "demo.pdf",
    "text": "Demo text about plants.",
    "concepts": [
        {
            "concept": {"concept_name": "Roots", "concept_description": "Anchor"},
            "questions": [
                {
                    "question_text": "Roots do what?",
                    "options": ["Anchor", "Fly", "Sing", "Glow"],
                    "correct_answer": 0,
                }
            ],
        },
        {
            "concept": {"concept_name": "Leaves", "concept_description": "Capture light"},
            "questions": [
                {
                    "question_text": "Leaves capture?",
                    "options": ["Sound", "Light", "Heat", "Rain"],
                    "correct_answer": 1,
                },
                {
                    "question_text": "Leaves are usually?",
                    "options": ["Green", "Blue", "Clear", "Metal"],
                    "correct_answer": 0,
                },
            ],
        },
    ],
}


@pytest.fixture
def seed_file(tmp_path):
    path = tmp_path / "demo.json"
    path.write_text(json.dumps(DEMO), encoding="utf-8")
    return str(path)


def test_seeds_private_copy_for_new_learner(in_memory_repo, seed_file, user, guest):
    seeder = DataSeeder(in_memory_repo)

    user_doc = seeder.seed_if_empty(user, seed_file)
    guest_doc = seeder.seed_if_empty(guest, seed_file)

    assert user_doc.user_id == user.user_id
    assert guest_doc.guest_session_id == guest.guest_session_id
    assert user_doc.id != guest_doc.id
    questions = in_memory_repo.get_questions_with_concepts(user_doc.id)
    assert len(questions) == 3
    assert {q.concept.name for q in questions} == {"Roots", "Leaves"}


def test_skips_learner_with_documents(in_memory_repo, seed_file, user):
    seeder = DataSeeder(in_memory_repo)
    seeder.seed_if_empty(user, seed_file)

    assert seeder.seed_if_empty(user, seed_file) is None
    assert len(in_memory_repo.list_documents(user)) == 1


def test_missing_seed_file(in_memory_repo, tmp_path, user):
    seeder = DataSeeder(in_memory_repo)

    assert seeder.seed_if_empty(user, str(tmp_path / "missing.json")) is None
    assert in_memory_repo.list_documents(user) == []


def test_bundled_demo_document_is_valid():
    demo = DataSeeder(repo=None).load(str(BUNDLED_DEMO))

    assert demo is not None
    assert len(demo.concepts) >= 3
    assert all(item.questions for item in demo.concepts)
