"""
Command-line interface for json-render.
Compiles patch streams, renders specs against state and streams generations.
"""
# typer relies on function calls used as default values
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from json_render.client import UIStream
from json_render.env import env
from json_render.errors import TestOperationFailed
from json_render.renderer import SpecRenderer
from json_render.stream import create_routed_spec_compiler, create_spec_stream_compiler

cli = typer.Typer(
	name="json-render",
	help="json-render - compile JSONL patch streams and render declarative UI specs",
	no_args_is_help=True,
)

err_console = Console(stderr=True)


def configure_logging(level: str) -> None:
	logging.basicConfig(
		level=level.upper(),
		format="%(message)s",
		handlers=[RichHandler(console=err_console, show_path=False)],
		force=True,
	)


def _emit(data: Any) -> None:
	# Plain JSON on stdout, diagnostics on stderr
	typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _load_json(path: Path, what: str) -> Any:
	try:
		return json.loads(path.read_text())
	except OSError as exc:
		err_console.print(f"[red]Cannot read {what} '{path}': {exc}[/red]")
		raise typer.Exit(1) from None
	except ValueError as exc:
		err_console.print(f"[red]Invalid JSON in {what} '{path}': {exc}[/red]")
		raise typer.Exit(1) from None


@cli.callback()
def main(
	log_level: str = typer.Option(
		env.log_level,
		"--log-level",
		help="Logging level (defaults to JSON_RENDER_LOG_LEVEL or WARNING)",
	),
):
	configure_logging(log_level)


@cli.command("compile")
def compile_cmd(
	patches: Path = typer.Argument(..., help="File with one JSON Patch per line"),
	spec: bool = typer.Option(
		False, "--spec", help="Route root/elements/state paths into a spec"
	),
	initial: Path | None = typer.Option(
		None, "--initial", help="JSON file holding the starting document"
	),
):
	"""Apply a JSONL patch file and print the resulting document."""
	text = patches.read_text()
	start = _load_json(initial, "initial document") if initial is not None else None
	compiler = (
		create_routed_spec_compiler(start) if spec else create_spec_stream_compiler(start)
	)
	try:
		compiler.push(text)
		result = compiler.get_result()
	except TestOperationFailed as exc:
		err_console.print(f"[red]{exc}[/red]")
		raise typer.Exit(1) from None

	_emit(result)
	if compiler.usage is not None:
		usage = compiler.usage
		err_console.print(
			f"[dim]tokens: prompt={usage['promptTokens']} "
			+ f"completion={usage['completionTokens']} total={usage['totalTokens']}[/dim]"
		)


@cli.command("render")
def render_cmd(
	spec_file: Path = typer.Argument(..., help="Spec JSON file"),
	state: Path | None = typer.Option(
		None, "--state", help="JSON file replacing the spec's initial state"
	),
):
	"""Resolve a spec against its state and print the rendered tree."""
	spec = _load_json(spec_file, "spec")
	if not isinstance(spec, dict):
		err_console.print("[red]A spec must be a JSON object[/red]")
		raise typer.Exit(1)
	if state is not None:
		spec["state"] = _load_json(state, "state")
	renderer = SpecRenderer(spec)
	_emit(renderer.tree)
	renderer.close()


@cli.command("stream")
def stream_cmd(
	prompt: str = typer.Argument(..., help="Prompt sent to the generation endpoint"),
	api: str | None = typer.Option(
		None, "--api", help="Endpoint URL (defaults to JSON_RENDER_API)"
	),
	previous: Path | None = typer.Option(
		None, "--previous", help="Spec JSON file to refine instead of starting empty"
	),
):
	"""Stream a generation and print the final spec."""
	context: dict[str, Any] | None = None
	if previous is not None:
		context = {"previousSpec": _load_json(previous, "previous spec")}
	try:
		stream = UIStream(api)
	except ValueError as exc:
		err_console.print(f"[red]{exc}[/red]")
		raise typer.Exit(1) from None

	with err_console.status(f"Streaming from {stream.api}..."):
		result = asyncio.run(stream.send(prompt, context))

	if result is None:
		message = str(stream.error) if stream.error is not None else "aborted"
		err_console.print(f"[red]Stream failed: {message}[/red]")
		raise typer.Exit(1)

	_emit(result)
	if stream.usage is not None:
		err_console.print(
			f"[dim]{len(stream.raw_lines)} patches, "
			+ f"{stream.usage['totalTokens']} tokens[/dim]"
		)


def run() -> None:
	cli()


if __name__ == "__main__":
	run()
