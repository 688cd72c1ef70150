from __future__ import annotations

import ast
import inspect
import textwrap
from pathlib import Path
from types import ModuleType
from typing import Iterator, List, Sequence, Union

from .errors import InvalidArgument

SETUP_NAMES = {"setup_function", "setup_method", "setup"}
TEARDOWN_NAMES = {"teardown_function", "teardown_method", "teardown"}

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


def _body_source(func_node: FunctionNode, lines: List[str]) -> str:
    start = func_node.body[0].lineno - 1
    end = func_node.body[-1].end_lineno or func_node.body[-1].lineno
    return textwrap.dedent("\n".join(lines[start:end])).strip()


def _describe_scope(body: Sequence[ast.stmt], lines: List[str]) -> Iterator[str]:
    funcs = [n for n in body if isinstance(n, (ast.FunctionDef, ast.AsyncFunctionDef))]
    setup = "\n".join(_body_source(f, lines) for f in funcs if f.name in SETUP_NAMES)
    teardown = "\n".join(_body_source(f, lines) for f in funcs if f.name in TEARDOWN_NAMES)

    for func in funcs:
        if not func.name.startswith("test"):
            continue
        parts = [f"Test Function Name: {func.name}\n"]
        if setup:
            parts.append(f"Setup Body:\n{setup}\n")
        parts.append(f"Test Function Body:\n{_body_source(func, lines)}\n")
        if teardown:
            parts.append(f"Teardown Body:\n{teardown}\n")
        parts.append("\n")
        yield "".join(parts)


def describe_tests(source: str) -> str:
    """
    Turn pytest-style test code into description text for the backend.

    Every `test*` function, at module level or inside a `Test*` class, becomes a
    block with its body, preceded by the setup bodies and followed by the
    teardown bodies of the same scope.
    """
    try:
        tree = ast.parse(source)
    except SyntaxError as exc:
        raise InvalidArgument(f"Failed to parse test source: {exc}") from exc

    lines = source.splitlines()
    blocks = list(_describe_scope(tree.body, lines))
    for node in tree.body:
        if isinstance(node, ast.ClassDef) and node.name.startswith("Test"):
            blocks.extend(_describe_scope(node.body, lines))
    return "".join(blocks)


def describe_test_module(module: Union[str, Path, ModuleType]) -> str:
    if isinstance(module, ModuleType):
        try:
            source = inspect.getsource(module)
        except (OSError, TypeError) as exc:
            raise InvalidArgument(f"Failed to read source of {module.__name__}: {exc}") from exc
        return describe_tests(source)

    path = Path(module)
    if not path.is_file():
        raise InvalidArgument(f"Test module not found: {path}")
    return describe_tests(path.read_text(encoding="utf-8"))


def describe_test_package(directory: Union[str, Path]) -> str:
    """Describe every test_*.py file below a directory, in path order."""
    root = Path(directory)
    if not root.is_dir():
        raise InvalidArgument(f"Test package not found: {root}")
    return "".join(describe_test_module(path) for path in sorted(root.rglob("test_*.py")))
