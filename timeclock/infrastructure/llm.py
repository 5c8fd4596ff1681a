"""Chat-completions client used to draft payroll audit notes."""
from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import httpx

from .annotations import SYSTEM_PROMPT


class AnnotationServiceError(RuntimeError):
    """Raised when the remote text-generation service returns an error."""


class ChatCompletionsAnnotationClient:
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        api_base: str = "https://api.lovable.dev/v1",
        model: str = "google/gemini-2.5-flash",
        temperature: float = 0.3,
        timeout: float = 20.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(api_base)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("api_base must include scheme and host")

        self._api_key = api_key
        self._request_url = f"{api_base.rstrip('/')}/chat/completions"
        self._model = model
        self._temperature = temperature
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    def _build_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self._temperature,
        }

    def annotate(self, prompt: str) -> str:
        response = self._client.post(
            self._request_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json=self._build_payload(prompt),
        )
        response.raise_for_status()

        data = response.json()
        if isinstance(data, dict) and data.get("error"):
            raise AnnotationServiceError(str(data["error"]))
        choices = (data or {}).get("choices") or []
        if not choices:
            return ""
        message = (choices[0] or {}).get("message") or {}
        return str(message.get("content") or "")

    def close(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            self._client.close()


__all__ = ["ChatCompletionsAnnotationClient", "AnnotationServiceError"]
