"""
RFC 6902 JSON Patch application over in-memory documents.

`add` and `replace` share upsert semantics: replacing a missing target adds
it instead of failing. `remove`, `move` and `copy` are no-ops when their
source does not resolve. `test` never mutates and raises
`TestOperationFailed` on mismatch.
"""

import copy
from typing import Any

from json_render.errors import InvalidPatchError, TestOperationFailed
from json_render.helpers import MISSING, values_equal
from json_render.pointer import add_by_path, get_by_path, remove_by_path
from json_render.types import PATCH_OPS, JsonPatch


def is_json_patch(value: Any) -> bool:
	"""Minimal shape check used to filter stream lines."""
	if not isinstance(value, dict):
		return False
	op = value.get("op")
	if not isinstance(op, str) or op not in PATCH_OPS:
		return False
	if not isinstance(value.get("path"), str):
		return False
	# A pointer, when present, must be a string
	return "from" not in value or isinstance(value["from"], str)


def apply_patch(doc: Any, patch: JsonPatch) -> None:
	op = patch.get("op")
	path = patch["path"]

	if op == "add" or op == "replace":
		add_by_path(doc, path, patch.get("value"))
	elif op == "remove":
		remove_by_path(doc, path)
	elif op == "move":
		source = patch.get("from")
		if source is None:
			return
		value = get_by_path(doc, source, MISSING)
		if value is MISSING:
			return
		remove_by_path(doc, source)
		add_by_path(doc, path, value)
	elif op == "copy":
		source = patch.get("from")
		if source is None:
			return
		value = get_by_path(doc, source, MISSING)
		if value is MISSING:
			return
		add_by_path(doc, path, copy.deepcopy(value))
	elif op == "test":
		actual = get_by_path(doc, path, MISSING)
		expected = patch.get("value")
		if actual is MISSING or not values_equal(actual, expected):
			raise TestOperationFailed(
				path, expected=expected, actual=None if actual is MISSING else actual
			)
	else:
		raise InvalidPatchError(patch)


def apply_patches(doc: Any, patches: list[JsonPatch]) -> None:
	for patch in patches:
		apply_patch(doc, patch)


__all__ = ["apply_patch", "apply_patches", "is_json_patch"]
