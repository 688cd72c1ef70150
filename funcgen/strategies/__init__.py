from .base import FunctionGenerationStrategy, HTTPStrategy
from .ollama import OllamaStrategy
from .chat_completions import ChatCompletionsStrategy, OpenAIStrategy, LlamaStrategy, is_transient_error

__all__ = [
    "FunctionGenerationStrategy",
    "HTTPStrategy",
    "OllamaStrategy",
    "ChatCompletionsStrategy",
    "OpenAIStrategy",
    "LlamaStrategy",
    "is_transient_error",
]
