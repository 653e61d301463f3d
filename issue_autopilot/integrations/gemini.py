"""
Gemini reasoning service.

Calls the ``generateContent`` REST endpoint directly over httpx and returns
the model's text untouched; the plan gate decides what it means.
"""

from __future__ import annotations

from typing import Optional

import httpx

from ..errors import MalformedResponseError
from .base import ReasoningService
from .http import json_body, send


class GeminiReasoningService(ReasoningService):
    """Client for the Gemini generative language API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._model = model
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"x-goog-api-key": api_key},
        )

    @property
    def model(self) -> str:
        return self._model

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "system_instruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
        }
        response = send(
            self.client,
            "POST",
            f"{self.base_url}/models/{self._model}:generateContent",
            json=payload,
        )
        data = json_body(response)

        if not isinstance(data, dict):
            raise MalformedResponseError("Gemini response is not an object")
        candidates = data.get("candidates") or []
        if not candidates:
            raise MalformedResponseError("Gemini returned no candidates")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text.strip():
            raise MalformedResponseError("Gemini returned an empty answer")
        return text
