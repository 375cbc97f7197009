"""
Incremental compilation of newline-delimited JSON Patch streams.

Generators emit one RFC 6902 operation per line. The compiler buffers
partial lines across chunks, applies every complete line in arrival order
and keeps a log of applied patches.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NamedTuple

from json_render.errors import InvalidPatchError, TestOperationFailed
from json_render.helpers import MISSING, values_equal
from json_render.patch import apply_patch, is_json_patch
from json_render.pointer import (
	get_by_path,
	remove_by_path,
	set_by_path,
	unescape_segment,
)
from json_render.types import JsonPatch, Spec, TokenUsage

logger = logging.getLogger(__name__)

PatchApplier = Callable[[Any, JsonPatch], Any]


# ====================
# Line parsing
# ====================
@dataclass(slots=True, frozen=True)
class PatchLine:
	patch: JsonPatch


@dataclass(slots=True, frozen=True)
class UsageLine:
	usage: TokenUsage


ParsedLine = PatchLine | UsageLine


def parse_stream_line(line: str) -> ParsedLine | None:
	"""Classify one stream line. Blank, comment and malformed lines yield None."""
	trimmed = line.strip()
	if not trimmed or trimmed.startswith("//"):
		return None
	try:
		parsed = json.loads(trimmed)
	except ValueError:
		logger.debug("Discarding malformed stream line: %r", trimmed)
		return None
	if isinstance(parsed, dict) and parsed.get("__meta") == "usage":
		return UsageLine(
			{
				"promptTokens": parsed.get("promptTokens") or 0,
				"completionTokens": parsed.get("completionTokens") or 0,
				"totalTokens": parsed.get("totalTokens") or 0,
			}
		)
	if not is_json_patch(parsed):
		logger.debug("Discarding stream line that is not a patch: %r", trimmed)
		return None
	return PatchLine(parsed)


def parse_patch_line(line: str) -> JsonPatch | None:
	parsed = parse_stream_line(line)
	if isinstance(parsed, PatchLine):
		return parsed.patch
	return None


# ====================
# Compiler
# ====================
class StreamPushResult(NamedTuple):
	result: Any
	new_patches: list[JsonPatch]


class SpecStreamCompiler:
	"""Accumulates a document from a chunked patch stream.

	`apply` defaults to plain RFC 6902 application; pass `apply_spec_patch`
	(or use `create_routed_spec_compiler`) when the document is a Spec.
	"""

	usage: TokenUsage | None
	_initial: Any
	_result: Any
	_buffer: str
	_patches: list[JsonPatch]

	def __init__(self, initial: Any = None, *, apply: PatchApplier = apply_patch):
		self._apply = apply
		self._initial = {} if initial is None else initial
		self.reset()

	def reset(self, initial: Any = None) -> None:
		if initial is not None:
			self._initial = initial
		self._result = copy.deepcopy(self._initial)
		self._buffer = ""
		self._patches = []
		self.usage = None

	def push(self, chunk: str) -> StreamPushResult:
		self._buffer += chunk
		*lines, self._buffer = self._buffer.split("\n")
		new_patches = self._process(lines)
		return StreamPushResult(self._snapshot(), new_patches)

	def get_result(self) -> Any:
		if self._buffer.strip():
			pending = self._buffer
			self._buffer = ""
			self._process([pending])
		return self._snapshot()

	def get_patches(self) -> list[JsonPatch]:
		return list(self._patches)

	def _snapshot(self) -> Any:
		return copy.deepcopy(self._result)

	def _process(self, lines: list[str]) -> list[JsonPatch]:
		applied: list[JsonPatch] = []
		for idx, line in enumerate(lines):
			parsed = parse_stream_line(line)
			if parsed is None:
				continue
			if isinstance(parsed, UsageLine):
				self.usage = parsed.usage
				continue
			try:
				self._apply(self._result, parsed.patch)
			except TestOperationFailed:
				# Keep the rest of this chunk for the next push
				remaining = lines[idx + 1 :]
				if remaining:
					self._buffer = "\n".join(remaining) + "\n" + self._buffer
				raise
			self._patches.append(parsed.patch)
			applied.append(parsed.patch)
		return applied


def compile_spec_stream(text: str, initial: Any = None) -> Any:
	compiler = SpecStreamCompiler(initial)
	compiler.push(text)
	return compiler.get_result()


# ====================
# Spec-aware routing
# ====================
def empty_spec() -> Spec:
	return {"root": "", "elements": {}}


def _normalize(path: str) -> str:
	return path if path.startswith("/") else "/" + path


def _split_spec_path(path: str) -> tuple[str, str | None, str | None]:
	"""Split "/<section>/<key>/<rest...>" keeping <rest> pointer-encoded."""
	parts = path.lstrip("/").split("/", 2)
	section = unescape_segment(parts[0])
	key = unescape_segment(parts[1]) if len(parts) > 1 else None
	rest = "/" + parts[2] if len(parts) > 2 else None
	return section, key, rest


def _set_spec_value(spec: Any, path: str, value: Any) -> None:
	section, key, rest = _split_spec_path(path)
	if section == "root" and key is None:
		spec["root"] = value
	elif section == "state":
		if key is None:
			spec["state"] = value
			return
		state = spec.get("state")
		if not isinstance(state, dict):
			state = {}
			spec["state"] = state
		set_by_path(state, path[len("/state") :], value)
	elif section == "elements":
		elements = spec.setdefault("elements", {})
		if key is None:
			spec["elements"] = value if isinstance(value, dict) else {}
		elif rest is None:
			elements[key] = value
		elif key in elements:
			# Replace rather than mutate so earlier snapshots keep their element
			element = copy.deepcopy(elements[key])
			set_by_path(element, rest, value)
			elements[key] = element
	else:
		logger.debug("Ignoring spec patch outside root/elements/state: %s", path)


def _remove_spec_value(spec: Any, path: str) -> None:
	section, key, rest = _split_spec_path(path)
	if section == "state":
		if key is None:
			spec.pop("state", None)
		elif isinstance(spec.get("state"), dict):
			remove_by_path(spec["state"], path[len("/state") :])
	elif section == "elements" and key is not None:
		elements = spec.get("elements") or {}
		if rest is None:
			elements.pop(key, None)
		elif key in elements:
			element = copy.deepcopy(elements[key])
			remove_by_path(element, rest)
			elements[key] = element
	else:
		logger.debug("Ignoring spec removal outside elements/state: %s", path)


def apply_spec_patch(spec: Any, patch: JsonPatch) -> Any:
	"""Apply a patch to a Spec, routing root/elements/state paths."""
	op = patch.get("op")
	path = _normalize(patch["path"])

	if op == "add" or op == "replace":
		_set_spec_value(spec, path, patch.get("value"))
	elif op == "remove":
		_remove_spec_value(spec, path)
	elif op == "move" or op == "copy":
		source = patch.get("from")
		if source is None:
			return spec
		source = _normalize(source)
		value = get_by_path(spec, source, MISSING)
		if value is MISSING:
			return spec
		if op == "move":
			_remove_spec_value(spec, source)
		else:
			value = copy.deepcopy(value)
		_set_spec_value(spec, path, value)
	elif op == "test":
		actual = get_by_path(spec, path, MISSING)
		expected = patch.get("value")
		if actual is MISSING or not values_equal(actual, expected):
			raise TestOperationFailed(
				path, expected=expected, actual=None if actual is MISSING else actual
			)
	else:
		raise InvalidPatchError(patch)
	return spec


def create_spec_stream_compiler(initial: Any = None) -> SpecStreamCompiler:
	"""Plain RFC 6902 compiler over an arbitrary document (default `{}`)."""
	return SpecStreamCompiler(initial)


def create_routed_spec_compiler(initial: Spec | None = None) -> SpecStreamCompiler:
	"""Compiler whose patches are routed into a Spec by `apply_spec_patch`."""
	return SpecStreamCompiler(
		initial if initial is not None else empty_spec(), apply=apply_spec_patch
	)


# ====================
# Mixed text / patch streams
# ====================
class MixedStreamParser:
	"""Splits a stream mixing prose and JSONL patches.

	Lines that parse as patches go to `on_patch`, usage metadata to
	`on_usage`, every other non-blank line to `on_text`.
	"""

	def __init__(
		self,
		on_patch: Callable[[JsonPatch], None],
		on_text: Callable[[str], None],
		on_usage: Callable[[TokenUsage], None] | None = None,
	) -> None:
		self.on_patch = on_patch
		self.on_text = on_text
		self.on_usage = on_usage
		self._buffer = ""

	def push(self, chunk: str) -> None:
		self._buffer += chunk
		*lines, self._buffer = self._buffer.split("\n")
		for line in lines:
			self._process_line(line)

	def flush(self) -> None:
		if self._buffer:
			pending = self._buffer
			self._buffer = ""
			self._process_line(pending)

	def _process_line(self, line: str) -> None:
		trimmed = line.strip()
		if not trimmed:
			return
		if trimmed.startswith("{"):
			parsed = parse_stream_line(trimmed)
			if isinstance(parsed, PatchLine):
				self.on_patch(parsed.patch)
				return
			if isinstance(parsed, UsageLine):
				if self.on_usage is not None:
					self.on_usage(parsed.usage)
				return
		self.on_text(trimmed)


__all__ = [
	"MixedStreamParser",
	"ParsedLine",
	"PatchLine",
	"SpecStreamCompiler",
	"StreamPushResult",
	"UsageLine",
	"apply_spec_patch",
	"compile_spec_stream",
	"create_routed_spec_compiler",
	"create_spec_stream_compiler",
	"empty_spec",
	"parse_patch_line",
	"parse_stream_line",
]
