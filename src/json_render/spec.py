"""
Conversions between spec shapes, and spec extraction from chat message parts.

- flat: a list of elements linked by `parentKey`
- nested: a tree of elements with inline `children`
- map: the canonical `{"root", "elements", "state"?}` Spec
"""

import copy
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, NamedTuple

from json_render.stream import apply_spec_patch, empty_spec
from json_render.types import SPEC_DATA_PART_TYPE, DataPart, Element, FlatElement, Spec

logger = logging.getLogger(__name__)

# Element fields carried over unchanged by the nested -> map conversion
_ELEMENT_FIELDS = ("visible", "on", "watch", "repeat")


def flat_to_tree(elements: Iterable[FlatElement]) -> Spec:
	"""Build a map spec from flat elements. The element without a parent is the root."""
	items = list(elements)
	element_map: dict[str, Element] = {}
	root = ""

	for item in items:
		element: Element = {
			"type": item["type"],
			"props": item.get("props") or {},
			"children": [],
		}
		if "visible" in item:
			element["visible"] = item["visible"]
		element_map[item["key"]] = element

	for item in items:
		parent_key = item.get("parentKey")
		if parent_key:
			parent = element_map.get(parent_key)
			if parent is not None:
				parent.setdefault("children", []).append(item["key"])
			else:
				logger.debug("Dropping '%s' from unknown parent '%s'", item["key"], parent_key)
		else:
			root = item["key"]

	return {"root": root, "elements": element_map}


def nested_to_flat(nested: Mapping[str, Any]) -> Spec:
	"""Flatten a nested tree into a map spec.

	Accepts either a root node or `{"root": node, "state"?: ...}`. Nodes may
	carry their own `key`; others are keyed `el-<n>` in depth-first order.
	"""
	root_node = nested.get("root") if isinstance(nested.get("root"), dict) else nested
	elements: dict[str, Element] = {}
	counter = 0

	def visit(node: Mapping[str, Any]) -> str:
		nonlocal counter
		key = node.get("key")
		if not isinstance(key, str) or not key or key in elements:
			key = f"el-{counter}"
			counter += 1
		element: Element = {
			"type": node.get("type", ""),
			"props": copy.deepcopy(node.get("props") or {}),
			"children": [],
		}
		for name in _ELEMENT_FIELDS:
			if name in node:
				element[name] = copy.deepcopy(node[name])
		elements[key] = element
		for child in node.get("children") or []:
			if isinstance(child, dict):
				element["children"].append(visit(child))
		return key

	spec: Spec = {"root": visit(root_node), "elements": elements}
	state = nested.get("state")
	if isinstance(state, dict):
		spec["state"] = copy.deepcopy(state)
	return spec


def _is_spec_payload(data: Any) -> bool:
	if not isinstance(data, dict):
		return False
	kind = data.get("type")
	if kind == "patch":
		return isinstance(data.get("patch"), dict)
	if kind == "flat" or kind == "nested":
		return isinstance(data.get("spec"), dict)
	return False


def build_spec_from_parts(parts: Sequence[DataPart]) -> Spec | None:
	"""Replay every spec data part in order. None when no part carried a spec."""
	spec = empty_spec()
	has_spec = False
	for part in parts:
		if part.get("type") != SPEC_DATA_PART_TYPE:
			continue
		payload = part.get("data")
		if not _is_spec_payload(payload):
			continue
		has_spec = True
		if payload["type"] == "patch":
			apply_spec_patch(spec, payload["patch"])
		elif payload["type"] == "flat":
			spec.update(copy.deepcopy(payload["spec"]))
		else:
			spec.update(nested_to_flat(payload["spec"]))
	return spec if has_spec else None


def get_text_from_parts(parts: Sequence[DataPart]) -> str:
	texts = [
		part["text"].strip()
		for part in parts
		if part.get("type") == "text" and isinstance(part.get("text"), str)
	]
	return "\n\n".join(text for text in texts if text)


class MessageContent(NamedTuple):
	spec: Spec | None
	text: str

	@property
	def has_spec(self) -> bool:
		return self.spec is not None and bool(self.spec.get("elements"))


def parse_message_parts(parts: Sequence[DataPart]) -> MessageContent:
	return MessageContent(build_spec_from_parts(parts), get_text_from_parts(parts))


__all__ = [
	"MessageContent",
	"build_spec_from_parts",
	"flat_to_tree",
	"get_text_from_parts",
	"nested_to_flat",
	"parse_message_parts",
]
