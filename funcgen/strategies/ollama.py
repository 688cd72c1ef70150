from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

import httpx

from ..errors import BackendError, TransientBackendError
from .base import HTTPStrategy

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://127.0.0.1:11434"


class OllamaStrategy(HTTPStrategy):
    """Runs prompts through a local Ollama server via POST /api/generate."""

    def __init__(
        self,
        model: str,
        base_url: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self.model = model
        self.base_url = (base_url or os.getenv("OLLAMA_BASE_URL", DEFAULT_OLLAMA_URL)).rstrip("/")
        self.options = options

    @staticmethod
    def _extract_text(data: Any) -> str:
        """Pull the generated text out of a /api/generate body (or a chat-shaped one)."""
        if isinstance(data, dict):
            text = data.get("response")
            if not isinstance(text, str):
                message = data.get("message")
                text = message.get("content") if isinstance(message, dict) else None
            return text if isinstance(text, str) else ""
        if not isinstance(data, str):
            return ""
        # Streamed bodies arrive as JSON lines; take the first line that carries text.
        for line in data.splitlines():
            try:
                extracted = OllamaStrategy._extract_text(json.loads(line))
            except json.JSONDecodeError:
                continue
            if extracted:
                return extracted
        return data.strip()

    async def generate_function_output(self, prompt: str) -> str:
        url = f"{self.base_url}/api/generate"
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
        }
        if self.options:
            payload["options"] = self.options

        try:
            resp = await self.client.post(url, json=payload)
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.error("Ollama request timed out: %s", exc)
            raise TransientBackendError(f"Ollama request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            logger.error("Ollama HTTP request error: %s", exc)
            raise BackendError(f"Ollama request failed: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("Ollama HTTP status error %s: %s", status, exc.response.text[:300])
            error_cls = TransientBackendError if status == 429 or status >= 500 else BackendError
            raise error_cls(f"Ollama returned status {status}: {exc.response.text}", status) from exc

        try:
            data = resp.json()
        except json.JSONDecodeError:
            data = resp.text

        text = self._extract_text(data)
        if not text:
            raise BackendError(f"Ollama response carried no text: {resp.text[:300]}", resp.status_code)
        return text.strip()
