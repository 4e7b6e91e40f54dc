"""Turn raw model completions into validated records.

Completions are expected to be JSON, optionally wrapped in a markdown
```json fence. Anything that does not parse, or does not have the expected
shape, raises ``AIResponseError``; no fallback content is ever produced.
"""
from __future__ import annotations

import dataclasses
import json
import re
import typing as t

JsonDict = dict[str, t.Any]

INVALID_AI_RESPONSE = "INVALID_AI_RESPONSE"

_OPENING_FENCE = re.compile(r"^```json\s*")
_CLOSING_FENCE = re.compile(r"```$")


class AIResponseError(ValueError):
    error = INVALID_AI_RESPONSE

    def __init__(self, details: str, *, index: int | None = None) -> None:
        super().__init__(details)
        self.details = details
        self.index = index


@dataclasses.dataclass(frozen=True)
class Explanation:
    title: str
    explanation: str

    def to_dict(self) -> JsonDict:
        return {"title": self.title, "explanation": self.explanation}


@dataclasses.dataclass(frozen=True)
class QuestionAnswer:
    question: str
    answer: str

    def to_dict(self) -> JsonDict:
        return {"question": self.question, "answer": self.answer}


def clean_ai_response(raw_text: str) -> str:
    s = raw_text.strip()
    s = _OPENING_FENCE.sub("", s)
    s = _CLOSING_FENCE.sub("", s)
    return s.strip()


def _parse(raw_text: str) -> t.Any:
    cleaned = clean_ai_response(raw_text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AIResponseError(str(e)) from e


def _has_text(obj: JsonDict, key: str) -> bool:
    value = obj.get(key)
    return isinstance(value, str) and bool(value)


def normalize_explanation(raw_text: str) -> Explanation:
    data = _parse(raw_text)
    if not isinstance(data, dict) or not _has_text(data, "title") or not _has_text(data, "explanation"):
        raise AIResponseError("AI response missing required fields: title or explanation")
    return Explanation(title=data["title"], explanation=data["explanation"])


def normalize_question_batch(raw_text: str) -> list[QuestionAnswer]:
    data = _parse(raw_text)
    if not isinstance(data, list):
        raise AIResponseError("AI response is not a valid JSON array")
    if not data:
        raise AIResponseError("AI response contained no questions")

    out: list[QuestionAnswer] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict) or not _has_text(item, "question") or not _has_text(item, "answer"):
            raise AIResponseError(
                f"Invalid question format at index {index}: missing question or answer",
                index=index,
            )
        out.append(QuestionAnswer(question=item["question"], answer=item["answer"]))
    return out
