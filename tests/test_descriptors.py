from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

import pytest
from pydantic import BaseModel, Field

from funcgen.descriptors import (
    BOOLEAN,
    DOUBLE,
    DYNAMIC,
    INTEGER,
    STRING,
    ArrayType,
    EnumType,
    Primitive,
    StructType,
    decode_response,
    decode_value,
    derive_schema,
    describe,
)
from funcgen.errors import EmptyResult, InvalidArgument, MalformedResponse


class Mood(Enum):
    HAPPY = "h"
    SAD = "s"


@dataclass
class Author:
    name: str


@dataclass
class Book:
    title: str
    author: Author
    tags: List[str]


@dataclass
class Empty:
    pass


class User(BaseModel):
    id: int
    email: str
    active: bool


def test_describe_primitives():
    assert describe(str) == STRING
    assert describe(int) == INTEGER
    assert describe(float) == DOUBLE
    assert describe(bool) == BOOLEAN


def test_describe_dynamic_types():
    assert describe(Any) == DYNAMIC
    assert describe(object) == DYNAMIC
    assert describe(dict) == DYNAMIC
    assert describe(Dict[str, int]) == DYNAMIC


def test_describe_sequences_and_optional():
    assert describe(List[int]) == ArrayType(INTEGER)
    assert describe(Tuple[str, ...]) == ArrayType(STRING)
    assert describe(list) == ArrayType(DYNAMIC)
    assert describe(Optional[int]) == INTEGER


def test_describe_passes_descriptors_through():
    custom = Primitive("short")
    assert describe(custom) is custom


@pytest.mark.parametrize("py_type", [complex, Tuple[int, str], Union[int, str], None])
def test_describe_rejects_unsupported(py_type):
    with pytest.raises(InvalidArgument):
        describe(py_type)


def test_describe_enum_and_structs():
    mood = describe(Mood)
    assert isinstance(mood, EnumType)
    assert mood.members == ("HAPPY", "SAD")

    book = describe(Book)
    assert isinstance(book, StructType)
    assert [name for name, _ in book.fields] == ["title", "author", "tags"]

    user = describe(User)
    assert isinstance(user, StructType)
    assert user.fields == (("id", INTEGER), ("email", STRING), ("active", BOOLEAN))


def test_schema_strings():
    assert derive_schema(describe(Mood)) == "enum(HAPPY, SAD)"
    assert derive_schema(describe(List[int])) == "array of integer"
    assert derive_schema(describe(List[Author])) == "array of Author"
    assert derive_schema(STRING) == "string"
    assert derive_schema(Primitive("character")) == "character"
    assert derive_schema(Primitive("decimal")) == "unknown primitive"
    assert derive_schema(DYNAMIC) == "unknown type"
    assert derive_schema(describe(Book)) == "{ title: string, author: Author, tags: array of string }"
    assert derive_schema(describe(Empty)) == "{ }"


def test_decode_nested_struct():
    value = {"title": "Dune", "author": {"name": "Frank Herbert"}, "tags": ["sf"]}

    assert decode_value(value, describe(Book)) == Book("Dune", Author("Frank Herbert"), ["sf"])


def test_decode_pydantic_model():
    user = decode_value({"id": 7, "email": "a@b.c", "active": True}, describe(User))

    assert isinstance(user, User)
    assert user.id == 7


def test_decode_integers():
    assert decode_value(3.0, INTEGER) == 3
    assert decode_value(2**40, Primitive("long")) == 2**40
    with pytest.raises(ValueError):
        decode_value(200, Primitive("byte"))
    with pytest.raises(ValueError):
        decode_value(2**40, INTEGER)
    with pytest.raises(TypeError):
        decode_value(True, INTEGER)
    with pytest.raises(TypeError):
        decode_value(1.5, INTEGER)


def test_decode_other_primitives():
    assert decode_value(2, DOUBLE) == 2.0
    assert decode_value("x", Primitive("character")) == "x"
    with pytest.raises(TypeError):
        decode_value("xy", Primitive("character"))
    with pytest.raises(TypeError):
        decode_value(1, BOOLEAN)
    with pytest.raises(TypeError):
        decode_value(None, STRING)


def test_decode_dynamic_keeps_value():
    assert decode_value({"a": [1, None]}, DYNAMIC) == {"a": [1, None]}


def test_decode_reports_path():
    with pytest.raises(TypeError, match=r"\$\[1\]"):
        decode_value([1, "two"], ArrayType(INTEGER))


def test_decode_response_maps_failures():
    with pytest.raises(MalformedResponse):
        decode_response("not json", STRING)
    with pytest.raises(EmptyResult):
        decode_response("null", STRING)
    with pytest.raises(MalformedResponse) as excinfo:
        decode_response('{"title": "Dune"}', describe(Book))
    assert excinfo.value.response == '{"title": "Dune"}'


class Person(BaseModel):
    full_name: str = Field(alias="fullName")
    age: int


@dataclass
class Node:
    name: str
    children: List["Node"]


class Category(BaseModel):
    title: str
    parent: Optional["Category"] = None


def test_pydantic_fields_are_keyed_by_alias():
    person = describe(Person)

    assert derive_schema(person) == "{ fullName: string, age: integer }"
    decoded = decode_value({"fullName": "Ada Lovelace", "age": 36}, person)
    assert isinstance(decoded, Person)
    assert decoded.full_name == "Ada Lovelace"
    with pytest.raises(ValueError):
        decode_value({"full_name": "Ada Lovelace", "age": 36}, person)


@pytest.mark.parametrize("py_type", [Node, Category, List[Node]])
def test_recursive_structs_are_rejected(py_type):
    with pytest.raises(InvalidArgument, match="Recursive type"):
        describe(py_type)


def test_repeated_non_recursive_struct_is_allowed():
    @dataclass
    class Pair:
        left: Author
        right: Author

    assert derive_schema(describe(Pair)) == "{ left: Author, right: Author }"
