from ai_util.gemini_client import GeminiClient, GeminiError, GeminiErrorKind
from ai_util.interview_ai import InterviewAIUtil
from ai_util.normalizer import AIResponseError, Explanation, QuestionAnswer

__all__ = [
    "AIResponseError",
    "Explanation",
    "GeminiClient",
    "GeminiError",
    "GeminiErrorKind",
    "InterviewAIUtil",
    "QuestionAnswer",
]
