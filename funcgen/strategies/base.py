from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx


class FunctionGenerationStrategy(ABC):
    """
    Turns a prompt into the raw text a generated function returns.

    Implementations must be safe to call concurrently and must raise on
    transport or backend failure instead of returning a malformed string.
    Model selection, credentials, timeouts and retries all live here.
    """

    @abstractmethod
    async def generate_function_output(self, prompt: str) -> str:
        ...


class HTTPStrategy(FunctionGenerationStrategy):
    """
    Shared plumbing for strategies backed by an httpx.AsyncClient.
    A client is created unless one is injected; it is closed with aclose() or
    by leaving an `async with` block.
    """

    def __init__(self, timeout: Optional[float] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        if client is None:
            read = timeout if timeout is not None else 300.0
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(connect=5.0, read=read, write=30.0, pool=5.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        self.client = client

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


def drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}
