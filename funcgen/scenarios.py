from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from .errors import InvalidArgument
from .output_parser import as_json

I = TypeVar("I")
O = TypeVar("O")


@dataclass(frozen=True, init=False)
class Scenario(Generic[I, O]):
    """
    An example input with its expected output, optionally described.

    Scenarios coach the backend (they are rendered verbatim into the prompt)
    and double as regression examples for the generated function.
    """

    input: I
    output: O
    description: str

    def __init__(self, input: I, output: O, description: Optional[str] = None) -> None:
        if input is None or output is None:
            raise InvalidArgument("Input and output cannot be null.")
        object.__setattr__(self, "input", input)
        object.__setattr__(self, "output", output)
        object.__setattr__(self, "description", description or "")

    @classmethod
    def of(cls, input: Any, output: Any) -> "Scenario":
        return cls(input, output)

    @classmethod
    def with_description(cls, input: Any, output: Any, description: Optional[str]) -> "Scenario":
        return cls(input, output, description)

    def __str__(self) -> str:
        text = f"Input: {as_json(self.input)}, Expected Output: {as_json(self.output)}"
        if self.description:
            text += f", Description: {self.description}"
        return text
