from collections.abc import Mapping
from typing import Any, Literal, get_args

from json_render.errors import Errors, errors as default_errors
from json_render.helpers import is_number, is_truthy, values_equal
from json_render.pointer import get_by_path
from json_render.types import VisibilityCondition

ComparisonOp = Literal["eq", "neq", "gt", "gte", "lt", "lte"]
COMPARISON_OPS: tuple[ComparisonOp, ...] = get_args(ComparisonOp)


def find_comparison(condition: Mapping[str, Any]) -> ComparisonOp | None:
	for op in COMPARISON_OPS:
		if op in condition:
			return op
	return None


def resolve_operand(operand: Any, state: Any) -> Any:
	"""Comparison operands may reference state with {"$state": path}."""
	if (
		isinstance(operand, dict)
		and len(operand) == 1
		and isinstance(operand.get("$state"), str)
	):
		return get_by_path(state, operand["$state"])
	return operand


def compare(value: Any, op: ComparisonOp, operand: Any) -> bool:
	"""Comparison that never raises: incompatible operands compare False."""
	if op == "eq":
		return values_equal(value, operand)
	if op == "neq":
		return not values_equal(value, operand)
	if not (
		(is_number(value) and is_number(operand))
		or (isinstance(value, str) and isinstance(operand, str))
	):
		return False
	if op == "gt":
		return value > operand
	if op == "gte":
		return value >= operand
	if op == "lt":
		return value < operand
	return value <= operand


def evaluate_state_condition(condition: Mapping[str, Any], state: Any) -> bool:
	value = get_by_path(state, condition["$state"])
	op = find_comparison(condition)
	if op is not None:
		result = compare(value, op, resolve_operand(condition[op], state))
	else:
		result = is_truthy(value)
	if condition.get("not") is True:
		result = not result
	return result


def is_visible(
	condition: VisibilityCondition | None,
	state: Any,
	*,
	errors: Errors | None = None,
) -> bool:
	"""Evaluate an element's `visible` condition against a state snapshot.

	A missing condition means visible. Lists are conjunctions; the empty
	list is visible.
	"""
	if condition is None or condition is True:
		return True
	if condition is False:
		return False
	if isinstance(condition, list):
		return all(is_visible(member, state, errors=errors) for member in condition)
	if isinstance(condition, dict) and isinstance(condition.get("$state"), str):
		return evaluate_state_condition(condition, state)
	(errors or default_errors).warn(
		"Unrecognised visibility condition; element hidden",
		code="visibility",
		details={"condition": condition},
	)
	return False


__all__ = [
	"COMPARISON_OPS",
	"ComparisonOp",
	"compare",
	"evaluate_state_condition",
	"find_comparison",
	"is_visible",
	"resolve_operand",
]
