from __future__ import annotations

import collections.abc
import dataclasses
import json
import types
import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple, Union

from pydantic import BaseModel

from .errors import EmptyResult, InvalidArgument, MalformedResponse

PRIMITIVE_KINDS: Tuple[str, ...] = (
    "string",
    "integer",
    "long",
    "short",
    "byte",
    "double",
    "float",
    "boolean",
    "character",
)

# Signed ranges for the integral kinds.
_INT_BITS: Dict[str, int] = {"byte": 8, "short": 16, "integer": 32, "long": 64}


@dataclass(frozen=True)
class Primitive:
    kind: str


@dataclass(frozen=True)
class EnumType:
    name: str
    members: Tuple[str, ...]
    enum_class: Optional[type] = field(default=None, compare=False)


@dataclass(frozen=True)
class ArrayType:
    element: "TypeDescriptor"


@dataclass(frozen=True)
class StructType:
    name: str
    fields: Tuple[Tuple[str, "TypeDescriptor"], ...]
    factory: Optional[Callable[..., Any]] = field(default=None, compare=False)


@dataclass(frozen=True)
class Dynamic:
    pass


TypeDescriptor = Union[Primitive, EnumType, ArrayType, StructType, Dynamic]

STRING = Primitive("string")
INTEGER = Primitive("integer")
LONG = Primitive("long")
DOUBLE = Primitive("double")
BOOLEAN = Primitive("boolean")
DYNAMIC = Dynamic()

_DESCRIPTOR_TYPES = (Primitive, EnumType, ArrayType, StructType, Dynamic)


def describe(py_type: Any, _seen: FrozenSet[type] = frozenset()) -> TypeDescriptor:
    """
    Build a descriptor from an ordinary Python annotation.

    Supports str/int/float/bool, Enum subclasses, list[X] and tuple[X, ...],
    dataclasses, pydantic models, Optional[X], and Any/object/dict (dynamic).
    Descriptors are returned unchanged. Pydantic fields are keyed by alias.
    Self-referencing structs raise InvalidArgument.
    """
    if isinstance(py_type, _DESCRIPTOR_TYPES):
        return py_type
    if py_type is None:
        raise InvalidArgument("Input and output types must be specified.")
    if py_type is Any or py_type is object or py_type is dict:
        return DYNAMIC
    if py_type is str:
        return STRING
    if py_type is bool:
        return BOOLEAN
    if py_type is int:
        return INTEGER
    if py_type is float:
        return DOUBLE
    if py_type in (list, tuple):
        return ArrayType(DYNAMIC)

    origin = typing.get_origin(py_type)
    if origin is not None:
        args = typing.get_args(py_type)
        if origin is Union or origin is getattr(types, "UnionType", None):
            non_none = [a for a in args if a is not type(None)]
            if len(non_none) == 1:
                return describe(non_none[0], _seen)
            raise InvalidArgument(f"Unsupported union type: {py_type!r}")
        if origin in (list, tuple, collections.abc.Sequence, collections.abc.Iterable):
            if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
                return ArrayType(describe(args[0], _seen))
            if origin is tuple and args:
                if len(set(args)) != 1:
                    raise InvalidArgument(f"Heterogeneous tuples are not supported: {py_type!r}")
            return ArrayType(describe(args[0], _seen) if args else DYNAMIC)
        if origin in (dict, collections.abc.Mapping):
            return DYNAMIC
        raise InvalidArgument(f"Unsupported generic type: {py_type!r}")

    if isinstance(py_type, type):
        if issubclass(py_type, Enum):
            return EnumType(py_type.__name__, tuple(m.name for m in py_type), py_type)
        if py_type in _seen:
            raise InvalidArgument(f"Recursive type {py_type.__name__} is not supported")
        inner = _seen | {py_type}
        if issubclass(py_type, BaseModel):
            fields = tuple(
                (info.alias or name, describe(info.annotation, inner))
                for name, info in py_type.model_fields.items()
            )
            return StructType(py_type.__name__, fields, py_type)
        if dataclasses.is_dataclass(py_type):
            try:
                hints = typing.get_type_hints(py_type)
            except NameError as exc:
                raise InvalidArgument(f"Cannot resolve field types of {py_type.__name__}: {exc}") from exc
            fields = tuple(
                (f.name, describe(hints.get(f.name, Any), inner)) for f in dataclasses.fields(py_type) if f.init
            )
            return StructType(py_type.__name__, fields, py_type)

    raise InvalidArgument(f"Unsupported type: {py_type!r}")


def type_name(descriptor: TypeDescriptor) -> str:
    """Short name used for array elements and struct fields."""
    if isinstance(descriptor, Primitive):
        return descriptor.kind
    if isinstance(descriptor, (EnumType, StructType)):
        return descriptor.name
    if isinstance(descriptor, ArrayType):
        return f"array of {type_name(descriptor.element)}"
    return "unknown type"


def derive_schema(descriptor: TypeDescriptor) -> str:
    """
    Textual schema embedded in the prompt. Documentation for the backend only;
    decoding never trusts it.
    """
    if isinstance(descriptor, EnumType):
        return f"enum({', '.join(descriptor.members)})"
    if isinstance(descriptor, ArrayType):
        return f"array of {type_name(descriptor.element)}"
    if isinstance(descriptor, Primitive):
        if descriptor.kind in PRIMITIVE_KINDS:
            return descriptor.kind
        return "unknown primitive"
    if isinstance(descriptor, Dynamic):
        return "unknown type"
    if not descriptor.fields:
        return "{ }"
    pairs = ", ".join(f"{name}: {type_name(ftype)}" for name, ftype in descriptor.fields)
    return "{ " + pairs + " }"


def _json_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _mismatch(path: str, descriptor: TypeDescriptor, value: Any) -> TypeError:
    return TypeError(f"{path}: expected {type_name(descriptor)}, got {_json_kind(value)}")


def _decode_primitive(value: Any, descriptor: Primitive, path: str) -> Any:
    kind = descriptor.kind
    if kind == "string":
        if isinstance(value, str):
            return value
    elif kind == "boolean":
        if isinstance(value, bool):
            return value
    elif kind in _INT_BITS:
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, int) and not isinstance(value, bool):
            bound = 1 << (_INT_BITS[kind] - 1)
            if not -bound <= value < bound:
                raise ValueError(f"{path}: {value} is out of range for {kind}")
            return value
    elif kind in ("double", "float"):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif kind == "character":
        if isinstance(value, str) and len(value) == 1:
            return value
    elif not isinstance(value, (list, dict)):
        return value
    raise _mismatch(path, descriptor, value)


def decode_value(value: Any, descriptor: TypeDescriptor, path: str = "$") -> Any:
    """
    Decode an already-parsed JSON value into the shape the descriptor declares.
    Raises TypeError or ValueError on any mismatch.
    """
    if isinstance(descriptor, Dynamic):
        return value
    if value is None:
        raise _mismatch(path, descriptor, value)
    if isinstance(descriptor, Primitive):
        return _decode_primitive(value, descriptor, path)
    if isinstance(descriptor, EnumType):
        if not isinstance(value, str):
            raise _mismatch(path, descriptor, value)
        if value not in descriptor.members:
            raise ValueError(f"{path}: '{value}' is not a member of {derive_schema(descriptor)}")
        return descriptor.enum_class[value] if descriptor.enum_class is not None else value
    if isinstance(descriptor, ArrayType):
        if not isinstance(value, list):
            raise _mismatch(path, descriptor, value)
        return [decode_value(item, descriptor.element, f"{path}[{i}]") for i, item in enumerate(value)]

    if not isinstance(value, dict):
        raise _mismatch(path, descriptor, value)
    declared = [name for name, _ in descriptor.fields]
    missing = [name for name in declared if name not in value]
    extra = sorted(key for key in value if key not in declared)
    if missing or extra:
        raise ValueError(f"{path}: fields do not match {descriptor.name} (missing={missing}, extra={extra})")
    decoded = {
        name: decode_value(value[name], ftype, f"{path}.{name}") for name, ftype in descriptor.fields
    }
    if descriptor.factory is None:
        return decoded
    if isinstance(descriptor.factory, type) and issubclass(descriptor.factory, BaseModel):
        # Keys are aliases here, so build through validation rather than __init__.
        return descriptor.factory.model_validate(decoded)
    return descriptor.factory(**decoded)


def decode_response(text: str, descriptor: TypeDescriptor) -> Any:
    """
    Parse a normalized (non-error) response into the declared output type.
    JSON null and the empty string are EmptyResult; any other failure is
    MalformedResponse chained to the underlying error.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"Failed to parse function output: {exc}", text) from exc

    if data is None or data == "":
        raise EmptyResult("Function returned null result")

    try:
        return decode_value(data, descriptor)
    except (TypeError, ValueError, KeyError) as exc:
        raise MalformedResponse(f"Failed to parse function output: {exc}", text) from exc
