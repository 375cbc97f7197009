import json
from pathlib import Path
from typing import Any

import pytest
from json_render import cli as cli_module
from json_render.cli import cli
from typer.testing import CliRunner

runner = CliRunner()


def write_json(path: Path, data: Any) -> Path:
	path.write_text(json.dumps(data))
	return path


def write_jsonl(path: Path, rows: list[dict[str, Any]]) -> Path:
	path.write_text("".join(json.dumps(row) + "\n" for row in rows))
	return path


def test_compile_plain_document(tmp_path: Path):
	patches = write_jsonl(
		tmp_path / "patches.jsonl",
		[
			{"op": "add", "path": "/todos", "value": []},
			{"op": "add", "path": "/todos/-", "value": "milk"},
		],
	)
	initial = write_json(tmp_path / "initial.json", {"owner": "ada"})
	result = runner.invoke(cli, ["compile", str(patches), "--initial", str(initial)])
	assert result.exit_code == 0, result.output
	assert json.loads(result.stdout) == {"owner": "ada", "todos": ["milk"]}


def test_compile_spec(tmp_path: Path):
	patches = write_jsonl(
		tmp_path / "spec.jsonl",
		[
			{"op": "add", "path": "/root", "value": "main"},
			{"op": "add", "path": "/elements/main", "value": {"type": "Card", "props": {}}},
		],
	)
	result = runner.invoke(cli, ["compile", str(patches), "--spec"])
	assert result.exit_code == 0, result.output
	assert json.loads(result.stdout) == {
		"root": "main",
		"elements": {"main": {"type": "Card", "props": {}}},
	}


def test_compile_failed_test_operation(tmp_path: Path):
	patches = write_jsonl(
		tmp_path / "patches.jsonl",
		[
			{"op": "add", "path": "/a", "value": 1},
			{"op": "test", "path": "/a", "value": 2},
		],
	)
	result = runner.invoke(cli, ["compile", str(patches)])
	assert result.exit_code == 1


def test_render_spec_with_state_override(tmp_path: Path):
	spec = write_json(
		tmp_path / "spec.json",
		{
			"root": "greeting",
			"elements": {
				"greeting": {
					"type": "Text",
					"props": {"text": {"$template": "Hello, ${/name}!"}},
				}
			},
			"state": {"name": "World"},
		},
	)
	state = write_json(tmp_path / "state.json", {"name": "Ada"})
	result = runner.invoke(cli, ["render", str(spec), "--state", str(state)])
	assert result.exit_code == 0, result.output
	tree = json.loads(result.stdout)
	assert tree["id"] == "greeting"
	assert tree["props"] == {"text": "Hello, Ada!"}


def test_render_rejects_invalid_json(tmp_path: Path):
	spec = tmp_path / "spec.json"
	spec.write_text("{nope")
	assert runner.invoke(cli, ["render", str(spec)]).exit_code == 1
	assert runner.invoke(cli, ["render", str(tmp_path / "missing.json")]).exit_code == 1
	write_json(spec, [1, 2])
	assert runner.invoke(cli, ["render", str(spec)]).exit_code == 1


def test_stream_requires_api():
	result = runner.invoke(cli, ["stream", "A login form"])
	assert result.exit_code == 1


class FakeStream:
	def __init__(self, api: str | None) -> None:
		self.api = api or "http://env.test"
		self.usage = None
		self.raw_lines: list[str] = []
		self.error: Exception | None = None

	async def send(self, prompt: str, context: Any = None) -> Any:
		if prompt == "fail":
			self.error = RuntimeError("boom")
			return None
		return {"root": "main", "elements": {}, "prompt": prompt, "context": context}


def test_stream_prints_final_spec(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
	monkeypatch.setattr(cli_module, "UIStream", FakeStream)
	previous = write_json(tmp_path / "previous.json", {"root": "old", "elements": {}})
	result = runner.invoke(
		cli, ["stream", "Make it blue", "--api", "http://x.test", "--previous", str(previous)]
	)
	assert result.exit_code == 0, result.output
	assert json.loads(result.stdout) == {
		"root": "main",
		"elements": {},
		"prompt": "Make it blue",
		"context": {"previousSpec": {"root": "old", "elements": {}}},
	}


def test_stream_failure_exits_nonzero(monkeypatch: pytest.MonkeyPatch):
	monkeypatch.setattr(cli_module, "UIStream", FakeStream)
	result = runner.invoke(cli, ["stream", "fail", "--api", "http://x.test"])
	assert result.exit_code == 1
	assert "boom" in result.output
