from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .errors import InvalidArgument
from .strategies import FunctionGenerationStrategy, LlamaStrategy, OllamaStrategy, OpenAIStrategy
from .strategies.ollama import DEFAULT_OLLAMA_URL

BACKENDS = ("ollama", "openai", "llama")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_number(name: str, cast: Callable[[str], Any] = float, positive: bool = False) -> Optional[Any]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    kind = "an integer" if cast is int else "a number"
    try:
        value = cast(raw.strip())
    except ValueError as exc:
        raise InvalidArgument(f"{name} must be {kind}, got {raw!r}") from exc
    if positive and value <= 0:
        raise InvalidArgument(f"{name} must be positive, got {raw!r}")
    return value


@dataclass
class FuncGenConfig:
    """
    Backend selection and connection settings. Defaults target a local Ollama
    server; every field can be overridden from the environment via from_env().
    """

    backend: str = "ollama"
    model: Optional[str] = None
    ollama_base_url: str = DEFAULT_OLLAMA_URL
    openai_api_key: Optional[str] = None
    llama_api_key: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout_sec: float = 300.0
    ollama_options: Dict[str, Any] = field(default_factory=dict)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "FuncGenConfig":
        timeout_sec = _env_number("FUNCGEN_TIMEOUT_SEC", positive=True)
        return cls(
            backend=os.getenv("FUNCGEN_BACKEND", "ollama").lower(),
            model=os.getenv("FUNCGEN_MODEL") or None,
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", DEFAULT_OLLAMA_URL),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            llama_api_key=os.getenv("LLAMA_API_KEY") or None,
            temperature=_env_number("FUNCGEN_TEMPERATURE"),
            max_tokens=_env_number("FUNCGEN_MAX_TOKENS", int, positive=True),
            timeout_sec=300.0 if timeout_sec is None else timeout_sec,
            log_level=os.getenv("FUNCGEN_LOG_LEVEL", "WARNING").upper(),
        )


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or os.getenv("FUNCGEN_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.WARNING), format=LOG_FORMAT)


def build_strategy(config: FuncGenConfig) -> FunctionGenerationStrategy:
    """Instantiate the strategy named by config.backend."""
    backend = config.backend.lower()
    if backend == "ollama":
        options = dict(config.ollama_options)
        if config.temperature is not None:
            options.setdefault("temperature", config.temperature)
        if config.max_tokens is not None:
            options.setdefault("num_predict", config.max_tokens)
        return OllamaStrategy(
            config.model or "llama3.2:latest",
            base_url=config.ollama_base_url,
            options=options or None,
            timeout=config.timeout_sec,
        )
    if backend == "openai":
        if not config.openai_api_key:
            raise InvalidArgument("OPENAI_API_KEY is required for the openai backend")
        return OpenAIStrategy(
            config.openai_api_key,
            config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout_sec,
        )
    if backend == "llama":
        if not config.llama_api_key:
            raise InvalidArgument("LLAMA_API_KEY is required for the llama backend")
        return LlamaStrategy(
            config.llama_api_key,
            config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout_sec,
        )
    raise InvalidArgument(f"Unknown backend {config.backend!r}; expected one of {', '.join(BACKENDS)}")
