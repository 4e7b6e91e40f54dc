from __future__ import annotations

import logging
import typing as t

from ai_util.gemini_client import GeminiClient
from ai_util.normalizer import (
    AIResponseError,
    Explanation,
    QuestionAnswer,
    clean_ai_response,
    normalize_explanation,
    normalize_question_batch,
)
from ai_util.prompts import concept_explain_prompt, question_answer_prompt

logger = logging.getLogger(__name__)


class InterviewAIUtil:
    def __init__(self, *, gemini: GeminiClient | None = None) -> None:
        self.gemini = gemini or GeminiClient()

    def _log_rejected(self, raw_text: str, err: AIResponseError) -> None:
        logger.error("Failed to parse AI response: %s", err.details)
        logger.error("Raw AI response: %s", raw_text)
        logger.error("Cleaned text: %s", clean_ai_response(raw_text))

    def generate_questions(
        self,
        *,
        role: str,
        experience: t.Any,
        topics_to_focus: str,
        number_of_questions: t.Any,
    ) -> list[QuestionAnswer]:
        logger.info("Generating questions with Gemini API...")
        prompt = question_answer_prompt(
            role=role,
            experience=experience,
            topics_to_focus=topics_to_focus,
            number_of_questions=number_of_questions,
        )
        raw_text = self.gemini.generate_text(prompt)
        logger.info("Raw AI response received: %s...", raw_text[:200])

        try:
            questions = normalize_question_batch(raw_text)
        except AIResponseError as e:
            self._log_rejected(raw_text, e)
            raise
        logger.info("Successfully generated %d questions", len(questions))
        return questions

    def generate_explanation(self, *, question: str) -> Explanation:
        logger.info("Generating explanation with Gemini API...")
        raw_text = self.gemini.generate_text(concept_explain_prompt(question))
        logger.info("Raw AI explanation response received: %s...", raw_text[:100])

        try:
            return normalize_explanation(raw_text)
        except AIResponseError as e:
            self._log_rejected(raw_text, e)
            raise
