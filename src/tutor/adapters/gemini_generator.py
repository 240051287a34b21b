import json
from typing import Any

from google import genai
from google.genai import types
from pydantic import ValidationError

from src.config import AppConfig
from src.shared.telemetry import Telemetry, measure_time, record_generation_failure
from src.tutor.domain.errors import GenerationError
from src.tutor.domain.models import (
    Concept,
    ConceptWithQuestions,
    ExtractedConcept,
    GeneratedQuestion,
)
from src.tutor.domain.ports import IContentGenerator

EXTRACTION_PROMPT = f"""You are an expert educational AI that extracts key concepts from study materials and creates quiz questions.

Given text from a document, you must:
1. Identify {AppConfig.MIN_CONCEPTS}-{AppConfig.MAX_CONCEPTS} key concepts that are important for students to understand
2. For each concept, generate {AppConfig.QUESTIONS_PER_CONCEPT} multiple-choice questions
3. Each question should have {AppConfig.OPTIONS_PER_QUESTION} options with exactly one correct answer
4. Make questions clear, specific, and testing real understanding (not just memorization)

Return a JSON array where each item has a "concept" object
("concept_name", "concept_description") and a "questions" array of
objects with "question_text", "options" and "correct_answer" (index 0-3)."""

RETEST_PROMPT = f"""You are an expert educational AI writing fresh quiz questions for a single concept a student struggles with.

Write {AppConfig.QUESTIONS_PER_CONCEPT} new multiple-choice questions about the concept below.
Each question has {AppConfig.OPTIONS_PER_QUESTION} options with exactly one correct answer.
Return a JSON array of objects with "question_text", "options" and "correct_answer" (index 0-3)."""


class GeminiContentGenerator(IContentGenerator):
    def __init__(
        self,
        api_key: str = AppConfig.GEMINI_API_KEY,
        model: str = AppConfig.GEMINI_MODEL,
        client: Any = None,
    ) -> None:
        self.telemetry = Telemetry("GeminiGenerator")
        self.model = model
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _generate(
        self, contents: str, config: types.GenerateContentConfig | None = None
    ) -> str:
        response = self.client.models.generate_content(
            model=self.model, contents=contents, config=config
        )
        text = response.text
        if not text:
            raise GenerationError("Empty response from Gemini")
        return text

    def _json_config(self, system_instruction: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=AppConfig.EXTRACTION_TEMPERATURE,
            response_mime_type="application/json",
        )

    def _valid_questions(self, raw_questions: Any) -> list[GeneratedQuestion]:
        questions = []
        for raw in raw_questions or []:
            try:
                questions.append(GeneratedQuestion.model_validate(raw))
            except ValidationError as e:
                self.telemetry.log_warning("Dropping malformed question", error=str(e))
        return questions

    # --- Structured generation ---
    @measure_time("gemini_extract_concepts")
    def extract_concepts(self, text: str) -> list[ConceptWithQuestions]:
        try:
            raw = self._generate(
                "Analyze this study material and extract key concepts with quiz "
                f"questions:\n\n{text}",
                self._json_config(EXTRACTION_PROMPT),
            )
            items = json.loads(raw)
        except Exception as e:
            record_generation_failure("extract_concepts")
            raise GenerationError(f"Failed to extract concepts: {e}") from e

        results: list[ConceptWithQuestions] = []
        for item in items if isinstance(items, list) else []:
            try:
                concept = ExtractedConcept.model_validate(item.get("concept", {}))
            except (ValidationError, AttributeError) as e:
                self.telemetry.log_warning("Dropping malformed concept", error=str(e))
                continue

            questions = self._valid_questions(item.get("questions"))
            if not questions:
                self.telemetry.log_warning(
                    "Dropping concept without usable questions",
                    concept=concept.concept_name,
                )
                continue
            results.append(ConceptWithQuestions(concept=concept, questions=questions))

        self.telemetry.log_info(
            "Concepts extracted",
            concepts=len(results),
            questions=sum(len(r.questions) for r in results),
        )
        return results

    @measure_time("gemini_generate_concept_questions")
    def generate_concept_questions(
        self, concept_name: str, concept_description: str, context: str
    ) -> list[GeneratedQuestion]:
        contents = (
            f"Concept: {concept_name}\n"
            f"Description: {concept_description}\n\n"
            f"Context from document:\n{context}"
        )
        try:
            items = json.loads(self._generate(contents, self._json_config(RETEST_PROMPT)))
        except Exception as e:
            record_generation_failure("generate_concept_questions")
            raise GenerationError(
                f"Failed to generate questions for '{concept_name}': {e}"
            ) from e

        # Some responses wrap the list in the extraction shape
        if isinstance(items, dict):
            items = items.get("questions", [])
        return self._valid_questions(items if isinstance(items, list) else [])

    # --- Free-text tutoring (never fails, falls back to canned text) ---
    def _text_or_fallback(self, operation: str, prompt: str, fallback: str) -> str:
        try:
            return self._generate(prompt)
        except Exception as e:
            record_generation_failure(operation)
            self.telemetry.log_error(f"Gemini {operation} failed", e)
            return fallback

    def explain_mistake(
        self,
        concept: Concept,
        question_text: str,
        correct_answer: str,
        user_answer: str,
    ) -> str:
        prompt = f"""You are a warm, supportive AI tutor helping a student who just got a question wrong.
Be encouraging and kind, never condescending.

The student was learning about: {concept.name}
Concept: {concept.description}

Question they got wrong: {question_text}
They answered: {user_answer}
Correct answer: {correct_answer}

In 2-3 sentences (under 100 words): acknowledge the attempt, explain why the
correct answer is right in simple terms, and encourage them to keep going."""
        return self._text_or_fallback(
            "explain_mistake",
            prompt,
            "Great try! This concept can be tricky, but you're making progress. "
            "Let's keep learning together!",
        )

    def generate_lesson(self, concept: Concept) -> str:
        prompt = f"""You are a warm, friendly AI tutor. A student got questions wrong about "{concept.name}" and needs to learn it from scratch.

Concept: {concept.description}

Write a beginner-friendly lesson (150-250 words): a simple definition, three
key aspects in plain language, two relatable real-world examples or analogies,
and a closing line of encouragement. Speak directly to the student."""
        return self._text_or_fallback(
            "generate_lesson",
            prompt,
            f"Let's explore {concept.name} together! {concept.description} "
            "Don't worry - we'll break this down into simple pieces.",
        )

    def answer_concept_question(self, concept: Concept, student_question: str) -> str:
        prompt = f"""You are a warm, supportive AI tutor helping a student learn about: {concept.name}

Concept: {concept.description}

The student asks: "{student_question}"

Answer directly in simple language, remind them of the core concept in one
sentence, and give at least one concrete example (80-150 words)."""
        return self._text_or_fallback(
            "answer_concept_question",
            prompt,
            "That's an interesting question! This concept relates to the main "
            "ideas we're studying. Let's explore it together.",
        )
