from __future__ import annotations

import logging
import typing as t

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from ai_util.gemini_client import GeminiError, GeminiErrorKind
from ai_util.normalizer import AIResponseError

logger = logging.getLogger(__name__)

JsonDict = dict[str, t.Any]


class ApiError(Exception):
    status_code = 500
    error = "SERVER_ERROR"

    def __init__(self, message: str, *, error: str | None = None, details: t.Any = None) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        self.details = details

    def to_dict(self) -> JsonDict:
        body: JsonDict = {"error": self.error, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthError(ApiError):
    status_code = 401
    error = "NOT_AUTHORIZED"


class ValidationError(ApiError):
    status_code = 400
    error = "VALIDATION_ERROR"


class NotFoundError(ApiError):
    status_code = 404
    error = "NOT_FOUND"


def error_response(status: int, error: str, message: str, details: t.Any = None):
    body: JsonDict = {"error": error, "message": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


# (status, tag, message) per upstream failure kind; UNKNOWN takes the endpoint's own tag.
_GEMINI_RESPONSES: dict[GeminiErrorKind, tuple[int, str, str]] = {
    GeminiErrorKind.API_KEY_INVALID: (
        400,
        "API_KEY_INVALID",
        "Invalid Gemini API key. Please check your GEMINI_API_KEY in the environment variables.",
    ),
    GeminiErrorKind.QUOTA_EXCEEDED: (
        429,
        "QUOTA_EXCEEDED",
        "API quota exceeded. Please try again later or check your Gemini API usage.",
    ),
    GeminiErrorKind.MODEL_NOT_FOUND: (
        503,
        "MODEL_NOT_FOUND",
        "The AI model is not available. Please try again later.",
    ),
    GeminiErrorKind.NETWORK_TIMEOUT: (
        503,
        "NETWORK_TIMEOUT",
        "Network timeout while connecting to AI service. Please try again.",
    ),
}


def gemini_error_response(err: GeminiError, *, fallback_error: str, fallback_message: str):
    known = _GEMINI_RESPONSES.get(err.kind)
    if known is None:
        return error_response(500, fallback_error, fallback_message, details=err.message)
    status, tag, message = known
    return error_response(status, tag, message)


def ai_response_error_response(err: AIResponseError, *, message: str):
    body: JsonDict = {"error": err.error, "message": message, "details": err.details}
    if err.index is not None:
        body["index"] = err.index
    return jsonify(body), 500


def register_error_handlers(server: Flask) -> None:
    @server.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        return jsonify(err.to_dict()), err.status_code

    @server.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response(err.code or 500, err.name.upper().replace(" ", "_"), err.description or err.name)

    @server.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        logger.exception("Unhandled error: %s", err)
        return error_response(500, "SERVER_ERROR", "Server error")
