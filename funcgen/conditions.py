from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Union

from .errors import InvalidArgument


class _Condition:
    """
    The failure is a single exception instance raised on every match, so
    callers can compare it by identity. Its traceback is reset on each raise
    and, after that, belongs to the most recent raise only: concurrent
    invocations that hit the same condition share one `__traceback__`.
    Bind a fresh failure per function if tracebacks matter.
    """

    failure: BaseException
    is_natural_language: ClassVar[bool]

    def _check_failure(self) -> None:
        if self.failure is None:
            raise InvalidArgument("All parameters must be non-null")
        if not isinstance(self.failure, BaseException):
            raise InvalidArgument(
                f"failure must be an exception instance, got {type(self.failure).__name__}"
            )

    @property
    def error_message(self) -> str:
        return str(self.failure)


@dataclass(frozen=True)
class LocalCondition(_Condition):
    """
    Pre-execution check: a predicate over the input, evaluated before any
    backend call. When it returns True the bound failure is raised.
    """

    failure: BaseException
    predicate: Callable[[Any], bool]

    is_natural_language: ClassVar[bool] = False

    def __post_init__(self) -> None:
        self._check_failure()
        if self.predicate is None:
            raise InvalidArgument("All parameters must be non-null")
        if not callable(self.predicate):
            raise InvalidArgument("predicate must be callable")

    def test(self, value: Any) -> bool:
        return bool(self.predicate(value))

    def validate(self, value: Any) -> None:
        if self.test(value):
            raise self.failure.with_traceback(None)

    def __str__(self) -> str:
        return f"LocalCondition{{failure={type(self.failure).__name__}, message='{self.error_message}'}}"


@dataclass(frozen=True)
class RemoteCondition(_Condition):
    """
    Execution error described in natural language. The backend decides whether
    it applies; the engine matches the reported message against error_message.
    """

    failure: BaseException
    description: str

    is_natural_language: ClassVar[bool] = True

    def __post_init__(self) -> None:
        self._check_failure()
        if self.description is None:
            raise InvalidArgument("All parameters must be non-null")

    def render(self) -> str:
        return f"- Condition: {self.description} | Error Message: {self.error_message}"

    def __str__(self) -> str:
        return f"RemoteCondition{{failure={type(self.failure).__name__}, message='{self.error_message}'}}"


ErrorCondition = Union[LocalCondition, RemoteCondition]
