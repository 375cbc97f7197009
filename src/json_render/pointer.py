"""
JSON Pointer (RFC 6901) addressing over nested dict/list documents.

All mutating helpers work in place, except `assoc_path` which returns a new
document sharing every untouched branch with the original. Paths may omit
the leading slash; "" and "/" address the document root.
"""

import logging
from typing import Any

from json_render.helpers import MISSING

logger = logging.getLogger(__name__)


def unescape_segment(segment: str) -> str:
	# ~1 first, so "~01" decodes to "~1" and not "/"
	return segment.replace("~1", "/").replace("~0", "~")


def escape_segment(segment: str) -> str:
	return segment.replace("~", "~0").replace("/", "~1")


def parse_pointer(path: str) -> list[str]:
	if path in ("", "/"):
		return []
	if path.startswith("/"):
		path = path[1:]
	return [unescape_segment(segment) for segment in path.split("/")]


def _parse_index(segment: str) -> int | None:
	if not segment.isdigit():
		return None
	return int(segment)


def get_by_path(doc: Any, path: str, default: Any = None) -> Any:
	current = doc
	for segment in parse_pointer(path):
		if isinstance(current, dict):
			if segment not in current:
				return default
			current = current[segment]
		elif isinstance(current, list):
			index = _parse_index(segment)
			if index is None or index >= len(current):
				return default
			current = current[index]
		else:
			return default
	return current


def has_path(doc: Any, path: str) -> bool:
	return get_by_path(doc, path, MISSING) is not MISSING


def _walk_to_parent(doc: Any, segments: list[str], create: bool) -> Any:
	"""Return the container holding the last segment, or None.

	With `create`, missing or scalar intermediates become empty dicts.
	"""
	current = doc
	for segment in segments[:-1]:
		if isinstance(current, dict):
			child = current.get(segment)
			if not isinstance(child, dict | list):
				if not create:
					return None
				child = {}
				current[segment] = child
			current = child
		elif isinstance(current, list):
			index = len(current) if segment == "-" else _parse_index(segment)
			if index is None:
				return None
			if index < len(current) and isinstance(current[index], dict | list):
				current = current[index]
				continue
			if not create or index > len(current):
				return None
			child = {}
			if index < len(current):
				current[index] = child
			else:
				current.append(child)
			current = child
		else:
			return None
	return current


def _replace_root(doc: Any, value: Any) -> None:
	if isinstance(doc, dict) and isinstance(value, dict):
		doc.clear()
		doc.update(value)
	elif isinstance(doc, list) and isinstance(value, list):
		doc[:] = value
	else:
		logger.debug(
			"Ignoring root write of %s into %s",
			type(value).__name__,
			type(doc).__name__,
		)


def set_by_path(doc: Any, path: str, value: Any) -> None:
	segments = parse_pointer(path)
	if not segments:
		_replace_root(doc, value)
		return
	parent = _walk_to_parent(doc, segments, create=True)
	if parent is None:
		return
	last = segments[-1]
	if isinstance(parent, list):
		index = len(parent) if last == "-" else _parse_index(last)
		if index is None:
			return
		if index < len(parent):
			parent[index] = value
		else:
			parent.extend([None] * (index - len(parent)))
			parent.append(value)
	else:
		parent[last] = value


def add_by_path(doc: Any, path: str, value: Any) -> None:
	segments = parse_pointer(path)
	if not segments:
		_replace_root(doc, value)
		return
	parent = _walk_to_parent(doc, segments, create=True)
	if parent is None:
		return
	last = segments[-1]
	if isinstance(parent, list):
		if last == "-":
			parent.append(value)
			return
		index = _parse_index(last)
		if index is None:
			return
		# Inserting past the end appends
		parent.insert(index, value)
	else:
		parent[last] = value


def remove_by_path(doc: Any, path: str) -> None:
	segments = parse_pointer(path)
	if not segments:
		return
	parent = _walk_to_parent(doc, segments, create=False)
	last = segments[-1]
	if isinstance(parent, list):
		index = _parse_index(last)
		if index is not None and index < len(parent):
			del parent[index]
	elif isinstance(parent, dict):
		parent.pop(last, None)


def _assoc(node: Any, segments: list[str], value: Any) -> Any:
	if not segments:
		return value
	head, rest = segments[0], segments[1:]
	if isinstance(node, list):
		index = len(node) if head == "-" else _parse_index(head)
		if index is None:
			return node
		updated = list(node)
		child = node[index] if index < len(node) else None
		new_child = _assoc(child, rest, value)
		if index < len(updated):
			updated[index] = new_child
		else:
			updated.extend([None] * (index - len(updated)))
			updated.append(new_child)
		return updated
	updated = dict(node) if isinstance(node, dict) else {}
	updated[head] = _assoc(updated.get(head), rest, value)
	return updated


def assoc_path(doc: Any, path: str, value: Any) -> Any:
	"""Copy-on-write `set_by_path`: returns a new document, `doc` is untouched."""
	return _assoc(doc, parse_pointer(path), value)


__all__ = [
	"add_by_path",
	"assoc_path",
	"escape_segment",
	"get_by_path",
	"has_path",
	"parse_pointer",
	"remove_by_path",
	"set_by_path",
	"unescape_segment",
]
