from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from .conditions import ErrorCondition, LocalCondition, RemoteCondition
from .descriptors import TypeDescriptor, decode_response, describe
from .errors import (
    EmptyResult,
    FuncGenError,
    InternalInvocationError,
    InvalidArgument,
    MalformedResponse,
    UnclassifiedRemoteError,
)
from .extractor import describe_test_module, describe_test_package, describe_tests
from .output_parser import normalize_response, parse_error_response
from .prompt_builder import build_prompt, build_template
from .scenarios import Scenario
from .strategies.base import FunctionGenerationStrategy

logger = logging.getLogger(__name__)

I = TypeVar("I")
O = TypeVar("O")
T = TypeVar("T")

Normalizer = Callable[[str], str]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class FunctionGenerator(Generic[I, O]):
    """
    A function whose body is delegated to a text-generation backend.

    Configuration is compiled once (prompt template, ordered error conditions,
    type descriptors) and is read-only afterwards, so one instance can serve
    concurrent invocations as long as the strategy itself is safe to share.

    Example::

        reverse = (
            FunctionGenerator.builder(str, str)
            .with_description("Reverse the input string")
            .with_strategy(OllamaStrategy("llama3.2:latest"))
            .build()
        )
        assert await reverse("hello") == "olleh"
    """

    def __init__(
        self,
        input_type: Any,
        output_type: Any,
        strategy: Optional[FunctionGenerationStrategy],
        description: Optional[str],
        scenarios: Iterable[Scenario] = (),
        error_conditions: Iterable[ErrorCondition] = (),
        normalizer: Normalizer = normalize_response,
    ) -> None:
        if input_type is None or output_type is None:
            raise InvalidArgument("Input and output types must be specified.")
        if strategy is None:
            raise InvalidArgument("A function generation strategy must be provided.")
        if not description:
            raise InvalidArgument("A description must be provided.")
        if not callable(normalizer):
            raise InvalidArgument("normalizer must be callable")

        self.input_type: TypeDescriptor = describe(input_type)
        self.output_type: TypeDescriptor = describe(output_type)
        self.strategy = strategy
        self.description = description
        self.scenarios: Tuple[Scenario, ...] = tuple(scenarios)
        self.error_conditions: Tuple[ErrorCondition, ...] = tuple(error_conditions)
        self.normalizer = normalizer
        self.prompt_template = build_template(description, self.scenarios)

    @staticmethod
    def builder(input_type: Any, output_type: Any) -> "FunctionGeneratorBuilder":
        return FunctionGeneratorBuilder(input_type, output_type)

    @property
    def local_conditions(self) -> List[LocalCondition]:
        return [c for c in self.error_conditions if isinstance(c, LocalCondition)]

    @property
    def remote_conditions(self) -> List[RemoteCondition]:
        return [c for c in self.error_conditions if isinstance(c, RemoteCondition)]

    def build_prompt(self, value: I) -> str:
        return build_prompt(self.prompt_template, value, self.input_type, self.output_type, self.error_conditions)

    def _is_declared_failure(self, exc: BaseException) -> bool:
        return any(exc is c.failure for c in self.error_conditions)

    async def invoke(self, value: I) -> O:
        if value is None:
            raise InvalidArgument("Input cannot be null")
        for condition in self.local_conditions:
            try:
                condition.validate(value)
            except FuncGenError:
                raise
            except Exception as exc:
                if self._is_declared_failure(exc):
                    raise
                raise InternalInvocationError(f"Pre-execution check raised unexpectedly: {exc}") from exc

        try:
            prompt = self.build_prompt(value)
        except FuncGenError:
            raise
        except Exception as exc:
            raise InternalInvocationError(f"Unexpected error building prompt: {exc}") from exc
        logger.debug("Prompt built (%d chars)", len(prompt))

        # Strategy failures propagate untouched; retries belong to the strategy.
        response = await self.strategy.generate_function_output(prompt)

        try:
            return self.interpret(response)
        except FuncGenError:
            raise
        except Exception as exc:
            if self._is_declared_failure(exc):
                raise
            raise InternalInvocationError(f"Unexpected error invoking function: {exc}") from exc

    def interpret(self, response: Optional[str]) -> O:
        """
        Classify a raw backend reply and decode it. Raises the mapped failure
        for structured errors, EmptyResult for absent output and
        MalformedResponse for anything that does not decode.
        """
        if response is None or (isinstance(response, str) and not response.strip()):
            raise EmptyResult("Function returned an empty response")
        if not isinstance(response, str):
            raise MalformedResponse(f"Strategy returned {type(response).__name__}, expected str")
        logger.debug("Raw response: %.300s", response)

        normalized = self.normalizer(response)
        logger.debug("Normalized response: %.300s", normalized)

        error = parse_error_response(normalized)
        if error is not None:
            self._raise_remote(error.message)

        return decode_response(normalized, self.output_type)

    def _raise_remote(self, message: str) -> None:
        for condition in self.remote_conditions:
            if condition.error_message == message:
                raise condition.failure.with_traceback(None)
        logger.warning("Backend reported an undeclared error: %s", message)
        raise UnclassifiedRemoteError(message)


class GeneratedFunction(Generic[I, O]):
    """
    Async callable returned by the builder. Supports pre-processing with
    compose() and post-processing with and_then(); transforms may be plain
    functions or coroutines and their own errors propagate unchanged.
    """

    def __init__(self, generator: FunctionGenerator, call: Optional[Callable[[Any], Awaitable[Any]]] = None) -> None:
        self.generator = generator
        self._call = call or generator.invoke

    async def __call__(self, value: I) -> O:
        return await self._call(value)

    def compose(self, before: Callable[[Any], Any]) -> "GeneratedFunction":
        call = self._call

        async def composed(value: Any) -> Any:
            return await call(await _resolve(before(value)))

        return GeneratedFunction(self.generator, composed)

    def and_then(self, after: Callable[[Any], Any]) -> "GeneratedFunction":
        call = self._call

        async def chained(value: Any) -> Any:
            return await _resolve(after(await call(value)))

        return GeneratedFunction(self.generator, chained)

    def invoke_sync(self, value: I) -> O:
        """Run one invocation to completion. Not for use inside a running event loop."""
        return asyncio.run(self(value))


class FunctionGeneratorBuilder(Generic[I, O]):
    """
    Fluent configuration. Nothing is validated per call: missing types, strategy
    or description fail once, in build().
    """

    def __init__(self, input_type: Any, output_type: Any) -> None:
        self.input_type = input_type
        self.output_type = output_type
        self.strategy: Optional[FunctionGenerationStrategy] = None
        self.normalizer: Normalizer = normalize_response
        self._description: List[str] = []
        self._scenarios: List[Scenario] = []
        self._error_conditions: List[ErrorCondition] = []

    @property
    def description(self) -> str:
        return "".join(self._description)

    def with_description(self, description: str) -> "FunctionGeneratorBuilder":
        """Appends to any description given earlier."""
        if description is None:
            raise InvalidArgument("description cannot be null")
        self._description.append(description)
        return self

    def with_scenarios(self, scenarios: Iterable[Scenario]) -> "FunctionGeneratorBuilder":
        self._scenarios.extend(scenarios)
        return self

    def with_strategy(self, strategy: FunctionGenerationStrategy) -> "FunctionGeneratorBuilder":
        self.strategy = strategy
        return self

    def with_pre_execution_check(self, failure: BaseException, predicate: Callable[[Any], bool]) -> "FunctionGeneratorBuilder":
        """Fail fast with `failure` when `predicate(input)` is true, before calling the backend."""
        self._error_conditions.append(LocalCondition(failure, predicate))
        return self

    def with_execution_error(self, failure: BaseException, condition_description: str) -> "FunctionGeneratorBuilder":
        """
        Let the backend decide whether `condition_description` holds; if it
        reports the failure's message, `failure` is raised. Enforcement depends
        on the model understanding the condition.
        """
        self._error_conditions.append(RemoteCondition(failure, condition_description))
        return self

    with_natural_language_error = with_execution_error

    def with_test_source(self, source: str) -> "FunctionGeneratorBuilder":
        self._description.append(describe_tests(source))
        return self

    def with_test_module(self, module: Union[str, Path, ModuleType]) -> "FunctionGeneratorBuilder":
        self._description.append(describe_test_module(module))
        return self

    def with_test_package(self, directory: Union[str, Path]) -> "FunctionGeneratorBuilder":
        self._description.append(describe_test_package(directory))
        return self

    def with_normalizer(self, normalizer: Normalizer) -> "FunctionGeneratorBuilder":
        self.normalizer = normalizer
        return self

    def build_generator(self) -> FunctionGenerator:
        return FunctionGenerator(
            self.input_type,
            self.output_type,
            self.strategy,
            self.description,
            scenarios=self._scenarios,
            error_conditions=self._error_conditions,
            normalizer=self.normalizer,
        )

    def build(self) -> GeneratedFunction:
        return GeneratedFunction(self.build_generator())
