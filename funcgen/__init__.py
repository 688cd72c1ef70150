"""
funcgen: functions whose behaviour is described in prose and computed by a
text-generation backend, with typed outputs and declared error conditions.
"""

from .engine import FunctionGenerator, FunctionGeneratorBuilder, GeneratedFunction
from .scenarios import Scenario
from .conditions import ErrorCondition, LocalCondition, RemoteCondition
from .descriptors import ArrayType, Dynamic, EnumType, Primitive, StructType, derive_schema, describe
from .errors import (
    BackendError,
    EmptyResult,
    FuncGenError,
    InternalInvocationError,
    InvalidArgument,
    MalformedResponse,
    TransientBackendError,
    UnclassifiedRemoteError,
)
from .strategies import (
    ChatCompletionsStrategy,
    FunctionGenerationStrategy,
    LlamaStrategy,
    OllamaStrategy,
    OpenAIStrategy,
)
from .config import FuncGenConfig, build_strategy, configure_logging

__all__ = [
    "FunctionGenerator",
    "FunctionGeneratorBuilder",
    "GeneratedFunction",
    "Scenario",
    "ErrorCondition",
    "LocalCondition",
    "RemoteCondition",
    "ArrayType",
    "Dynamic",
    "EnumType",
    "Primitive",
    "StructType",
    "derive_schema",
    "describe",
    "BackendError",
    "EmptyResult",
    "FuncGenError",
    "InternalInvocationError",
    "InvalidArgument",
    "MalformedResponse",
    "TransientBackendError",
    "UnclassifiedRemoteError",
    "ChatCompletionsStrategy",
    "FunctionGenerationStrategy",
    "LlamaStrategy",
    "OllamaStrategy",
    "OpenAIStrategy",
    "FuncGenConfig",
    "build_strategy",
    "configure_logging",
]
