from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from ..errors import BackendError, InvalidArgument, TransientBackendError
from .base import HTTPStrategy, drop_none

logger = logging.getLogger(__name__)

OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
LLAMA_ENDPOINT = "https://api.llama-api.com/chat/completions"


def is_transient_error(status_code: int, message: str) -> bool:
    """Rate limits, server errors and timeout-flavoured messages are worth retrying."""
    if status_code == 429 or 500 <= status_code < 600:
        return True
    lower = (message or "").lower()
    return "timeout" in lower or "temporary" in lower or "temporarily" in lower


def _error_details(resp: httpx.Response) -> Tuple[str, str]:
    try:
        body = resp.json()
    except json.JSONDecodeError:
        return "unknown", resp.text
    if not isinstance(body, dict):
        return "unknown", resp.text
    error = body.get("error")
    if isinstance(error, dict):
        return str(error.get("type") or error.get("code") or "unknown"), str(error.get("message") or resp.text)
    if isinstance(error, str):
        return error, str(body.get("message") or resp.text)
    return "unknown", str(body.get("message") or resp.text)


class ChatCompletionsStrategy(HTTPStrategy):
    """
    Single-message chat completion against an OpenAI-style endpoint. The prompt
    is sent as one user message and the first choice's content is returned.
    """

    provider = "Chat completions"
    default_endpoint = OPENAI_ENDPOINT
    default_model = "gpt-4"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
        timeout: Optional[float] = None,
        endpoint: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise InvalidArgument("API key cannot be null or empty")
        if temperature is not None and not 0.0 <= temperature <= 2.0:
            raise InvalidArgument("Temperature must be between 0.0 and 2.0")
        if max_tokens is not None and max_tokens <= 0:
            raise InvalidArgument("max_tokens must be positive")
        if top_p is not None and not 0.0 <= top_p <= 1.0:
            raise InvalidArgument("top_p must be between 0.0 and 1.0")
        super().__init__(timeout=timeout, client=client)
        self.api_key = api_key
        self.model = model or self.default_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p
        self.endpoint = endpoint or self.default_endpoint

    def _request_body(self, prompt: str) -> Dict[str, Any]:
        return drop_none(
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
                "top_p": self.top_p,
            }
        )

    async def generate_function_output(self, prompt: str) -> str:
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}
        try:
            resp = await self.client.post(self.endpoint, json=self._request_body(prompt), headers=headers)
        except httpx.TimeoutException as exc:
            logger.error("%s request timed out: %s", self.provider, exc)
            raise TransientBackendError(f"{self.provider} API request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            logger.error("%s request error: %s", self.provider, exc)
            raise BackendError(f"{self.provider} API request failed: {exc}") from exc

        if resp.status_code != 200:
            error_type, message = _error_details(resp)
            logger.error("%s API error %s (%s): %s", self.provider, resp.status_code, error_type, message)
            if is_transient_error(resp.status_code, message):
                raise TransientBackendError(
                    f"{self.provider} API transient error (status: {resp.status_code}, type: {error_type}): {message}",
                    resp.status_code,
                )
            raise BackendError(
                f"{self.provider} API non-transient error (status: {resp.status_code}, type: {error_type}): {message}",
                resp.status_code,
            )

        try:
            data = resp.json()
        except json.JSONDecodeError as exc:
            raise BackendError(f"{self.provider} API returned a non-JSON body: {resp.text[:300]}", 200) from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise BackendError(
                f"{self.provider} API error (status: 200, type: invalid_response): Response contained no choices", 200
            )
        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message") if isinstance(first.get("message"), dict) else {}
        content = message.get("content")
        if not isinstance(content, str):
            raise BackendError(
                f"{self.provider} API error (status: 200, type: invalid_response): First choice carried no content", 200
            )
        return content


class OpenAIStrategy(ChatCompletionsStrategy):
    provider = "OpenAI"
    default_endpoint = OPENAI_ENDPOINT
    default_model = "gpt-4"


class LlamaStrategy(ChatCompletionsStrategy):
    provider = "Llama"
    default_endpoint = LLAMA_ENDPOINT
    default_model = "llama3.1-70b"
