from __future__ import annotations

import argparse
import asyncio
import json
import logging
from textwrap import indent
from typing import Any, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from .config import BACKENDS, FuncGenConfig, build_strategy, configure_logging
from .descriptors import BOOLEAN, DOUBLE, DYNAMIC, INTEGER, STRING
from .engine import FunctionGenerator
from .errors import FuncGenError, InvalidArgument
from .output_parser import as_json
from .scenarios import Scenario
from .strategies import HTTPStrategy

logger = logging.getLogger(__name__)

CONSOLE = Console()

OUTPUT_TYPES = {
    "string": STRING,
    "integer": INTEGER,
    "double": DOUBLE,
    "boolean": BOOLEAN,
    "dynamic": DYNAMIC,
}

SCENARIO_SEPARATOR = "=>"


def _print_block(title: str, content: str, border_style: str = "cyan") -> None:
    CONSOLE.print(Panel.fit(Text(indent(content.strip(), "  ")), title=title, border_style=border_style))


def _loads_or_text(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def parse_input(raw: str, as_json_value: bool) -> Any:
    if not as_json_value:
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidArgument(f"--input is not valid JSON: {exc}") from exc


def parse_scenario(text: str, as_json_value: bool) -> Scenario:
    """Parse `IN=>OUT`. The output side is read as JSON when it parses, else as text."""
    if SCENARIO_SEPARATOR not in text:
        raise InvalidArgument(f"Scenario must look like IN{SCENARIO_SEPARATOR}OUT, got {text!r}")
    left, right = text.split(SCENARIO_SEPARATOR, 1)
    return Scenario.of(parse_input(left.strip(), as_json_value), _loads_or_text(right.strip()))


def build_generator(args: argparse.Namespace, config: FuncGenConfig) -> FunctionGenerator:
    input_type = DYNAMIC if args.input_json else STRING
    scenarios = [parse_scenario(s, args.input_json) for s in args.scenario or []]
    builder = (
        FunctionGenerator.builder(input_type, OUTPUT_TYPES[args.output_type])
        .with_description(args.description)
        .with_scenarios(scenarios)
    )
    strategy = build_strategy(config)
    try:
        return builder.with_strategy(strategy).build_generator()
    except FuncGenError:
        if isinstance(strategy, HTTPStrategy):
            asyncio.run(strategy.aclose())
        raise


async def _invoke(generator: FunctionGenerator, value: Any, show_prompt: bool = False) -> Any:
    try:
        if show_prompt:
            _print_block("Prompt", generator.build_prompt(value))
        return await generator.invoke(value)
    finally:
        if isinstance(generator.strategy, HTTPStrategy):
            await generator.strategy.aclose()


def handle_run(args: argparse.Namespace) -> int:
    try:
        config = FuncGenConfig.from_env()
        if args.backend:
            config.backend = args.backend
        if args.model:
            config.model = args.model
        value = parse_input(args.input, args.input_json)
        generator = build_generator(args, config)
        result = asyncio.run(_invoke(generator, value, args.show_prompt))
    except FuncGenError as exc:
        logger.debug("Invocation failed", exc_info=True)
        _print_block(type(exc).__name__, str(exc), border_style="red")
        return 1

    _print_block("Output", as_json(result), border_style="green")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="funcgen: run a function described in plain language")
    parser.add_argument("--log-level", default=None, help="Logging level (default: FUNCGEN_LOG_LEVEL or WARNING).")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Build a function from a description and invoke it once.")
    run.add_argument("--description", required=True, help="What the function does.")
    run.add_argument("--input", required=True, help="Input value.")
    run.add_argument("--output-type", choices=sorted(OUTPUT_TYPES), default="string")
    run.add_argument("--input-json", action="store_true", help="Parse --input and scenario inputs as JSON.")
    run.add_argument(
        "--scenario",
        action="append",
        metavar=f"IN{SCENARIO_SEPARATOR}OUT",
        help="Example input and expected output. May be repeated.",
    )
    run.add_argument("--backend", choices=BACKENDS, default=None, help="Overrides FUNCGEN_BACKEND.")
    run.add_argument("--model", default=None, help="Overrides FUNCGEN_MODEL.")
    run.add_argument("--show-prompt", action="store_true", help="Print the prompt before invoking.")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "run":
        return handle_run(args)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
