import math
from collections.abc import Mapping, Sequence
from typing import Any

from typing_extensions import override


class Sentinel:
	def __init__(self, name: str) -> None:
		self.name = name

	@override
	def __repr__(self) -> str:
		return self.name


# Distinguishes "path does not resolve" from a stored None
MISSING: Any = Sentinel("MISSING")


def is_number(value: Any) -> bool:
	return isinstance(value, (int, float)) and not isinstance(value, bool)


def values_equal(a: Any, b: Any) -> bool:
	"""Structural equality over JSON documents.

	Lists compare element-wise in order, mappings by key membership and
	per-key equality. Booleans never compare equal to numbers.
	"""
	if a is b:
		return True
	if isinstance(a, bool) or isinstance(b, bool):
		return isinstance(a, bool) and isinstance(b, bool) and a == b
	if is_number(a) and is_number(b):
		return a == b
	if isinstance(a, Mapping) and isinstance(b, Mapping):
		if len(a) != len(b):
			return False
		for key, value in a.items():
			if key not in b:
				return False
			if not values_equal(value, b[key]):
				return False
		return True
	if isinstance(a, list | tuple) and isinstance(b, list | tuple):
		if len(a) != len(b):
			return False
		return all(values_equal(x, y) for x, y in zip(a, b, strict=True))
	if type(a) is not type(b):
		return False
	return a == b


def is_truthy(value: Any) -> bool:
	"""JavaScript truthiness: empty containers are truthy, NaN is falsy."""
	if value is None or value is MISSING or value is False:
		return False
	if isinstance(value, str):
		return value != ""
	if is_number(value):
		return value != 0 and not (isinstance(value, float) and math.isnan(value))
	return True


def to_js_string(value: Any) -> str:
	"""Mirror JavaScript's String(value) for JSON values."""
	if value is None or value is MISSING:
		return ""
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, float):
		if math.isnan(value):
			return "NaN"
		if math.isinf(value):
			return "Infinity" if value > 0 else "-Infinity"
		if value.is_integer():
			return str(int(value))
		return repr(value)
	if isinstance(value, str):
		return value
	if isinstance(value, Mapping):
		return "[object Object]"
	if isinstance(value, Sequence):
		return ",".join(to_js_string(item) for item in value)
	return str(value)


__all__ = [
	"MISSING",
	"Sentinel",
	"is_number",
	"is_truthy",
	"to_js_string",
	"values_equal",
]
