from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class GeminiError(RuntimeError):
    """Raised when the model call fails or returns no text."""


class GeminiClient:
    """Minimal client for the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-1.5-flash-latest",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def generate_text(
        self,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
        top_k: Optional[int] = None,
        top_p: Optional[float] = None,
        timeout: float = 30,
    ) -> str:
        if not self.configured:
            raise GeminiError("GEMINI_API_KEY is not configured")

        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        }
        if top_k is not None:
            generation_config["topK"] = top_k
        if top_p is not None:
            generation_config["topP"] = top_p

        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        try:
            r = self.session.post(url, params={"key": self.api_key}, json=body, timeout=timeout)
            r.raise_for_status()
            payload = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise GeminiError(f"Gemini request failed: {exc}") from exc

        try:
            text = payload["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise GeminiError("No valid response from AI")
        logger.debug("Gemini response received: %s...", text[:200])
        return text

    def close(self) -> None:
        self.session.close()
