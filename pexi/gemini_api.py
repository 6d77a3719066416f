"""
Gemini ``generateContent`` API client.

Sends the whole conversation (prior turns plus the just-submitted parts) in a
single request and returns the model's plain-text reply.  One request per
user turn: no streaming, no retries.

:meth:`GeminiClient.respond` never raises for request failures.  Transport
errors, HTTP errors and malformed bodies are logged and turned into a
:class:`Reply` flagged as failed, whose text is ``"Error: ..."`` so the
caller can show it as a model turn.
"""

import json
import logging
from dataclasses import dataclass
from typing import Sequence

import requests

from .messages import ContentPart, Role, Turn

log = logging.getLogger("pexi")

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

#: Prefix of every reply synthesised from a failure.
ERROR_PREFIX = "Error: "


@dataclass(frozen=True)
class Reply:
    """Reply text plus whether it was synthesised from a failure.

    Only ``failed`` marks a failure; a model may answer with text that
    itself starts with ``"Error: "``.
    """

    text: str
    failed: bool = False
    detail: str | None = None

    @classmethod
    def failure(cls, detail: str) -> "Reply":
        return cls(f"{ERROR_PREFIX}{detail}", failed=True,
                   detail=detail or "Failed to get a response.")


# ---------------------------------------------------------------------------
# Error-handling helpers
# ---------------------------------------------------------------------------

class GeminiAPIError(Exception):
    """Rich API error that preserves diagnostic context for debugging.

    Attributes
    ----------
    status_code : int | None
        HTTP status code (``None`` for non-HTTP errors).
    endpoint : str
        The URL that was called.
    model : str
        Model identifier sent in the request.
    response_body : str
        First 500 chars of the response body (often contains the real error).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        model: str = "",
        response_body: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.model = model
        self.response_body = response_body
        super().__init__(message)

    @property
    def short_message(self) -> str:
        """The message without the diagnostic lines added by ``__str__``."""
        return self.args[0] if self.args else ""

    def __str__(self) -> str:  # noqa: D105
        parts = [self.short_message]
        if self.status_code is not None:
            parts.append(f"  HTTP {self.status_code}")
        if self.endpoint:
            parts.append(f"  Endpoint: {self.endpoint}")
        if self.model:
            parts.append(f"  Model: {self.model}")
        if self.response_body:
            parts.append(f"  Response: {self.response_body[:500]}")
        return "\n".join(parts)


def _extract_error_detail(response: requests.Response) -> str:
    """Extract a readable error description from an HTTP response.

    Google APIs answer with ``{"error": {"code", "message", "status"}}``;
    anything else falls back to the raw text (truncated to 500 chars).
    """
    try:
        body = response.json()
        if isinstance(body, dict) and "error" in body:
            err = body["error"]
            if isinstance(err, dict):
                return (
                    f"[{err.get('status', 'error')}] "
                    f"{err.get('message', str(err))}"
                )
            return str(err)
        return response.text[:500]
    except Exception:  # noqa: BLE001
        return response.text[:500] if response.text else "(empty body)"


def _summarise_contents(contents: list[dict]) -> str:
    """Describe *contents* by role and part kind, without any payload data."""
    summary = []
    for entry in contents:
        kinds = [
            "inlineData" if "inlineData" in part else "text"
            for part in entry.get("parts", [])
        ]
        summary.append(f"{entry.get('role', '?')}[{', '.join(kinds)}]")
    return " ".join(summary)


# ---------------------------------------------------------------------------
# Request / response shapes
# ---------------------------------------------------------------------------

def build_contents(
    history: Sequence[Turn], new_parts: Sequence[ContentPart],
) -> list[dict]:
    """Return the ``contents`` list: every prior turn, then the new user turn."""
    contents = [turn.to_dict() for turn in history]
    contents.append({
        "role": Role.USER.value,
        "parts": [part.to_dict() for part in new_parts],
    })
    return contents


def build_payload(contents: list[dict]) -> dict:
    """Build the request body for ``generateContent``."""
    return {"contents": contents}


def extract_text(body: dict) -> str:
    """Return the reply text from a ``generateContent`` response body.

    Raises
    ------
    GeminiAPIError
        When the prompt was blocked or the body has no usable candidate.
    """
    if not isinstance(body, dict):
        raise GeminiAPIError(
            f"Unexpected response type {type(body).__name__}; expected an object.",
        )
    candidates = body.get("candidates") or []
    if not candidates:
        reason = (body.get("promptFeedback") or {}).get("blockReason")
        if reason:
            raise GeminiAPIError(f"The prompt was blocked ({reason}).")
        raise GeminiAPIError("No candidates were returned by the model.")

    candidate = candidates[0]
    parts = (candidate.get("content") or {}).get("parts") or []
    texts = [p["text"] for p in parts if isinstance(p, dict) and "text" in p]
    if not texts:
        finish = candidate.get("finishReason", "unknown")
        raise GeminiAPIError(
            f"The model returned no text (finish reason: {finish}).",
        )
    return "".join(texts)


class GeminiClient:
    """Thin wrapper around the Gemini ``generateContent`` endpoint."""

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self._api_key = api_key or ""
        self.model = model
        self._base_url = base_url.rstrip("/")

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self.model}:generateContent"

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def generate_content(self, contents: list[dict]) -> str:
        """POST *contents* and return the reply text.

        Raises :class:`GeminiAPIError` for a missing API key, transport
        errors, HTTP errors, and unparsable or empty responses.
        """
        url = self.endpoint
        if not self._api_key:
            raise GeminiAPIError(
                "No API key configured. Set GEMINI_API_KEY (or API_KEY).",
                endpoint=url,
                model=self.model,
            )

        log.debug("[API] ── Sending generateContent request ──")
        log.debug("[API]   model = %s  |  turns = %d", self.model, len(contents))
        log.debug("[API]   contents = %s", _summarise_contents(contents))

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self._api_key,
        }
        try:
            response = requests.post(
                url, headers=headers, json=build_payload(contents),
            )
        except requests.RequestException as exc:
            raise GeminiAPIError(
                f"Network error while contacting the model: "
                f"{type(exc).__name__}: {exc}",
                endpoint=url,
                model=self.model,
            ) from exc

        log.debug("[API] POST %s → %d  (body len=%d)",
                  url, response.status_code, len(response.text or ""))

        # ---- Handle HTTP errors with full diagnostic context ------------
        if not response.ok:
            detail = _extract_error_detail(response)
            raise GeminiAPIError(
                f"Gemini API request failed (HTTP {response.status_code}). "
                f"{detail}",
                status_code=response.status_code,
                endpoint=url,
                model=self.model,
                response_body=response.text[:500] if response.text else "",
            )

        # ---- Parse response ---------------------------------------------
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise GeminiAPIError(
                f"Gemini returned non-JSON response (HTTP {response.status_code}).",
                status_code=response.status_code,
                endpoint=url,
                model=self.model,
                response_body=response.text[:500],
            ) from exc
        return extract_text(body)

    def respond(
        self, history: Sequence[Turn], new_parts: Sequence[ContentPart],
    ) -> Reply:
        """Like :meth:`generate`, but reports whether the request failed."""
        contents = build_contents(history, new_parts)
        try:
            return Reply(self.generate_content(contents))
        except GeminiAPIError as exc:
            log.error("[API] GeminiAPIError while calling %s: %s",
                      self.model, exc)
            return Reply.failure(exc.short_message)
        except Exception as exc:  # noqa: BLE001
            log.error("[API] Unexpected error while calling %s: %s",
                      self.model, exc, exc_info=True)
            return Reply.failure(f"{type(exc).__name__}: {exc}")

    def generate(
        self, history: Sequence[Turn], new_parts: Sequence[ContentPart],
    ) -> str:
        """Return the model's reply to *new_parts* given *history*.

        Failures come back as ``"Error: <message>"`` instead of raising.
        """
        return self.respond(history, new_parts).text
