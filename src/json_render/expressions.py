"""
Dynamic prop expressions.

A prop value is either a literal or an object carrying exactly one
discriminator key (`$state`, `$cond`, `$computed`, `$template`,
`$bindState`, `$bindItem`, `$item`, `$index`). `parse_expression` decodes the
discriminated object into one of the expression dataclasses below; anything
else, including objects with several discriminators, is a literal and is
passed through untouched.

Resolution is pure: it reads an explicit state snapshot and never writes to
the store or to the element it came from.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, NamedTuple, TypeAlias

from json_render.errors import Errors, errors as default_errors
from json_render.helpers import MISSING, is_truthy, to_js_string
from json_render.pointer import get_by_path
from json_render.visibility import (
	ComparisonOp,
	compare,
	find_comparison,
	is_visible,
	resolve_operand,
)

logger = logging.getLogger(__name__)

ComputedFunction: TypeAlias = Callable[[dict[str, Any]], Any]

DISCRIMINATORS: tuple[str, ...] = (
	"$state",
	"$cond",
	"$computed",
	"$template",
	"$bindState",
	"$bindItem",
	"$item",
	"$index",
)

TEMPLATE_PATTERN = re.compile(r"\$\{([^}]*)\}")


# ====================
# Expression kinds
# ====================
@dataclass(slots=True, frozen=True)
class StateExpr:
	path: str
	negate: bool = False
	op: ComparisonOp | None = None
	operand: Any = None


@dataclass(slots=True, frozen=True)
class CondExpr:
	condition: Any
	then: Any
	otherwise: Any = MISSING


@dataclass(slots=True, frozen=True)
class ComputedExpr:
	name: str
	args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class TemplateExpr:
	template: str


@dataclass(slots=True, frozen=True)
class BindStateExpr:
	path: str


@dataclass(slots=True, frozen=True)
class BindItemExpr:
	field: str


@dataclass(slots=True, frozen=True)
class ItemExpr:
	field: str


@dataclass(slots=True, frozen=True)
class IndexExpr:
	pass


Expression: TypeAlias = (
	StateExpr
	| CondExpr
	| ComputedExpr
	| TemplateExpr
	| BindStateExpr
	| BindItemExpr
	| ItemExpr
	| IndexExpr
)


def parse_expression(value: Any) -> Expression | None:
	"""Decode a prop value into an expression, or None for literals."""
	if not isinstance(value, dict):
		return None
	present = [key for key in DISCRIMINATORS if key in value]
	if len(present) != 1:
		return None
	kind = present[0]
	raw = value[kind]

	if kind == "$state":
		if not isinstance(raw, str):
			return None
		op = find_comparison(value)
		return StateExpr(
			path=raw,
			negate=value.get("not") is True,
			op=op,
			operand=value[op] if op is not None else None,
		)
	if kind == "$cond":
		return CondExpr(
			condition=raw,
			then=value.get("$then"),
			otherwise=value.get("$else", MISSING),
		)
	if kind == "$computed":
		if not isinstance(raw, str):
			return None
		args = value.get("args")
		return ComputedExpr(name=raw, args=args if isinstance(args, dict) else {})
	if kind == "$template":
		return TemplateExpr(raw) if isinstance(raw, str) else None
	if kind == "$bindState":
		return BindStateExpr(raw) if isinstance(raw, str) else None
	if kind == "$bindItem":
		return BindItemExpr(raw) if isinstance(raw, str) else None
	if kind == "$item":
		return ItemExpr(raw) if isinstance(raw, str) else None
	return IndexExpr() if raw is True else None


def is_expression(value: Any) -> bool:
	return parse_expression(value) is not None


# ====================
# Context
# ====================
@dataclass(slots=True, frozen=True)
class RepeatScope:
	"""One iteration of a repeated element: the item, its index and the
	state path of the array it came from."""

	item: Any
	index: int
	base_path: str

	def item_path(self, item_field: str = "") -> str:
		base = f"{self.base_path.rstrip('/')}/{self.index}"
		if not item_field:
			return base
		return f"{base}/{item_field.lstrip('/')}"


@dataclass(slots=True, frozen=True)
class ResolveContext:
	state: Any
	repeat: RepeatScope | None = None
	functions: Mapping[str, ComputedFunction] = field(default_factory=dict)
	errors: Errors | None = None

	def with_state(self, state: Any) -> "ResolveContext":
		return replace(self, state=state)

	def with_repeat(self, repeat: RepeatScope | None) -> "ResolveContext":
		return replace(self, repeat=repeat)

	@property
	def reporter(self) -> Errors:
		return self.errors or default_errors


class ResolvedProps(NamedTuple):
	props: dict[str, Any]
	bindings: dict[str, str]


# ====================
# Resolution
# ====================
def _render_template(template: str, state: Any) -> str:
	def substitute(match: re.Match[str]) -> str:
		return to_js_string(get_by_path(state, match.group(1)))

	return TEMPLATE_PATTERN.sub(substitute, template)


def _call_computed(expr: ComputedExpr, ctx: ResolveContext) -> Any:
	fn = ctx.functions.get(expr.name)
	if fn is None:
		ctx.reporter.warn(
			f"Computed function '{expr.name}' is not registered",
			code="expression.computed",
			details={"function": expr.name},
		)
		return None
	args = {name: resolve_value(arg, ctx) for name, arg in expr.args.items()}
	try:
		return fn(args)
	except Exception as exc:
		ctx.reporter.report(
			exc, code="expression.computed", details={"function": expr.name}
		)
		return None


def _resolve_state(expr: StateExpr, ctx: ResolveContext) -> Any:
	value = get_by_path(ctx.state, expr.path)
	if expr.op is not None:
		result = compare(value, expr.op, resolve_operand(expr.operand, ctx.state))
		return not result if expr.negate else result
	if expr.negate:
		return not is_truthy(value)
	return value


def resolve_binding(value: Any, ctx: ResolveContext) -> tuple[Any, str | None]:
	"""Resolve a prop value, returning (value, binding path or None)."""
	expr = parse_expression(value)
	if expr is None:
		return value, None

	if isinstance(expr, StateExpr):
		return _resolve_state(expr, ctx), None
	if isinstance(expr, CondExpr):
		if is_visible(expr.condition, ctx.state, errors=ctx.errors):
			return resolve_value(expr.then, ctx), None
		if expr.otherwise is MISSING:
			return None, None
		return resolve_value(expr.otherwise, ctx), None
	if isinstance(expr, ComputedExpr):
		return _call_computed(expr, ctx), None
	if isinstance(expr, TemplateExpr):
		return _render_template(expr.template, ctx.state), None
	if isinstance(expr, BindStateExpr):
		return get_by_path(ctx.state, expr.path), expr.path
	if isinstance(expr, BindItemExpr):
		if ctx.repeat is None:
			logger.debug("$bindItem '%s' used outside a repeat scope", expr.field)
			return None, None
		return (
			get_by_path(ctx.repeat.item, expr.field),
			ctx.repeat.item_path(expr.field),
		)
	if isinstance(expr, ItemExpr):
		if ctx.repeat is None:
			return None, None
		return get_by_path(ctx.repeat.item, expr.field), None
	return (ctx.repeat.index if ctx.repeat is not None else None), None


def resolve_value(value: Any, ctx: ResolveContext) -> Any:
	return resolve_binding(value, ctx)[0]


def resolve_props(props: Mapping[str, Any] | None, ctx: ResolveContext) -> ResolvedProps:
	"""Resolve every prop. Anything other than a mapping resolves as no props."""
	resolved: dict[str, Any] = {}
	bindings: dict[str, str] = {}
	if not isinstance(props, Mapping):
		return ResolvedProps(resolved, bindings)
	for key, raw in props.items():
		value, binding = resolve_binding(raw, ctx)
		resolved[key] = value
		if binding is not None:
			bindings[key] = binding
	return ResolvedProps(resolved, bindings)


def resolve_action_params(
	params: Mapping[str, Any] | None, ctx: ResolveContext
) -> dict[str, Any]:
	if not isinstance(params, Mapping):
		return {}
	return {key: resolve_value(raw, ctx) for key, raw in params.items()}


__all__ = [
	"DISCRIMINATORS",
	"BindItemExpr",
	"BindStateExpr",
	"ComputedExpr",
	"ComputedFunction",
	"CondExpr",
	"Expression",
	"IndexExpr",
	"ItemExpr",
	"RepeatScope",
	"ResolveContext",
	"ResolvedProps",
	"StateExpr",
	"TemplateExpr",
	"is_expression",
	"parse_expression",
	"resolve_action_params",
	"resolve_binding",
	"resolve_props",
	"resolve_value",
]
