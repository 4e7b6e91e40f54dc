from __future__ import annotations

import enum
import http.client
import json
import logging
import os
import socket
import typing as t
import urllib.error
import urllib.parse
import urllib.request

JsonDict = dict[str, t.Any]

logger = logging.getLogger(__name__)


class GeminiErrorKind(enum.Enum):
    API_KEY_INVALID = "API_KEY_INVALID"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    UNKNOWN = "UNKNOWN"


class GeminiError(RuntimeError):
    """Failure talking to the Gemini API, tagged with the kind of failure."""

    def __init__(self, kind: GeminiErrorKind, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def message(self) -> str:
        return str(self)


def classify_error(message: str, status_code: int | None = None) -> GeminiErrorKind:
    lowered = message.lower()
    if "api_key_invalid" in lowered or "api key not found" in lowered or "api key not valid" in lowered:
        return GeminiErrorKind.API_KEY_INVALID
    if status_code in (401, 403):
        return GeminiErrorKind.API_KEY_INVALID
    if status_code == 429 or "quota" in lowered or "resource_exhausted" in lowered:
        return GeminiErrorKind.QUOTA_EXCEEDED
    if status_code == 404 or ("model" in lowered and "not found" in lowered):
        return GeminiErrorKind.MODEL_NOT_FOUND
    if "timeout" in lowered or "timed out" in lowered or "network" in lowered:
        return GeminiErrorKind.NETWORK_TIMEOUT
    return GeminiErrorKind.UNKNOWN


class GeminiClient:
    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_s: float | None = None,
    ) -> None:
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise RuntimeError("Missing GEMINI_API_KEY (or GOOGLE_API_KEY).")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def _build_request(self, prompt: str, temperature: float | None) -> urllib.request.Request:
        payload: JsonDict = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if temperature is not None:
            payload["generationConfig"] = {"temperature": temperature}

        url = f"{self.base_url}/models/{urllib.parse.quote(self.model)}:generateContent?key={urllib.parse.quote(self.api_key)}"
        return urllib.request.Request(
            url,
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

    def _open(self, req: urllib.request.Request) -> str:
        if self.timeout_s is None:
            resp_cm = urllib.request.urlopen(req)
        else:
            resp_cm = urllib.request.urlopen(req, timeout=self.timeout_s)
        with resp_cm as resp:
            return resp.read().decode("utf-8")

    @staticmethod
    def _extract_text(raw: str) -> str:
        try:
            data = t.cast(JsonDict, json.loads(raw))
        except json.JSONDecodeError as e:
            raise GeminiError(GeminiErrorKind.UNKNOWN, f"Gemini returned invalid JSON: {raw[:1000]}") from e

        if not isinstance(data, dict):
            raise GeminiError(GeminiErrorKind.UNKNOWN, f"Gemini returned an unexpected body: {raw[:1000]}")

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            raise GeminiError(GeminiErrorKind.UNKNOWN, "Gemini returned no candidates.")
        if not isinstance(candidates[0], dict):
            raise GeminiError(GeminiErrorKind.UNKNOWN, f"Gemini returned a malformed candidate: {candidates[0]!r}")

        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            parts = []
        text_parts = [p.get("text") for p in parts if isinstance(p, dict) and p.get("text")]
        if not text_parts:
            finish_reason = candidates[0].get("finishReason")
            raise GeminiError(
                GeminiErrorKind.UNKNOWN,
                f"Gemini returned no text parts. Finish reason: {finish_reason}.",
            )
        return "".join(t.cast(list[str], text_parts))

    def generate_text(self, prompt: str, *, temperature: float | None = None) -> str:
        """Send a single prompt and return the raw text completion.

        Errors are classified here, once, into a ``GeminiError`` so callers
        never have to inspect upstream message text. Nothing is retried.
        """
        req = self._build_request(prompt, temperature)
        try:
            raw = self._open(req)
        except urllib.error.HTTPError as e:
            try:
                body = e.read().decode("utf-8")
            except (OSError, UnicodeDecodeError):
                body = ""
            message = f"Gemini HTTPError {e.code}: {body}"
            raise GeminiError(classify_error(message, e.code), message, e.code) from e
        except (socket.timeout, TimeoutError) as e:
            raise GeminiError(GeminiErrorKind.NETWORK_TIMEOUT, f"Gemini request timed out: {e}") from e
        except urllib.error.URLError as e:
            raise GeminiError(GeminiErrorKind.NETWORK_TIMEOUT, f"Gemini network error: {e.reason}") from e
        except (OSError, http.client.HTTPException, UnicodeDecodeError) as e:
            message = f"Gemini request failed: {e!r}"
            raise GeminiError(classify_error(message), message) from e
        return self._extract_text(raw)
