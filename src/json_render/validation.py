"""
Field validation.

A field validator owns the ordered checks declared on one bound input and
runs all of them against the value at its state path, collecting every
failing message. The registry tracks the validators of the currently mounted
fields so `validateForm` can aggregate them.
"""

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeAlias
from urllib.parse import urlparse

from json_render.errors import Errors, errors as default_errors
from json_render.expressions import ComputedFunction, ResolveContext, resolve_value
from json_render.helpers import is_number, values_equal
from json_render.pointer import get_by_path
from json_render.types import FormValidationResult, StatePath, ValidationCheck

logger = logging.getLogger(__name__)

# (value, resolved args) -> passes
CheckFunction: TypeAlias = Callable[[Any, dict[str, Any]], bool]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ====================
# Built-in checks
# ====================
def is_required(value: Any, args: dict[str, Any]) -> bool:
	if value is None:
		return False
	if isinstance(value, str):
		return value.strip() != ""
	if isinstance(value, list):
		return len(value) > 0
	return True


def is_email(value: Any, args: dict[str, Any]) -> bool:
	return isinstance(value, str) and EMAIL_PATTERN.match(value) is not None


def _length(value: Any) -> int | None:
	if isinstance(value, str | list):
		return len(value)
	return None


def has_min_length(value: Any, args: dict[str, Any]) -> bool:
	length = _length(value)
	limit = args.get("min")
	if length is None or not is_number(limit):
		return False
	return length >= limit


def has_max_length(value: Any, args: dict[str, Any]) -> bool:
	length = _length(value)
	limit = args.get("max")
	if length is None or not is_number(limit):
		return False
	return length <= limit


def matches_pattern(value: Any, args: dict[str, Any]) -> bool:
	pattern = args.get("pattern")
	if not isinstance(value, str) or not isinstance(pattern, str):
		return False
	try:
		return re.search(pattern, value) is not None
	except re.error:
		logger.debug("Invalid validation pattern %r", pattern)
		return False


def _as_number(value: Any) -> float | None:
	if is_number(value):
		return value
	if isinstance(value, str) and value.strip():
		try:
			return float(value)
		except ValueError:
			return None
	return None


def is_at_least(value: Any, args: dict[str, Any]) -> bool:
	number = _as_number(value)
	limit = args.get("min")
	return number is not None and is_number(limit) and number >= limit


def is_at_most(value: Any, args: dict[str, Any]) -> bool:
	number = _as_number(value)
	limit = args.get("max")
	return number is not None and is_number(limit) and number <= limit


def is_numeric(value: Any, args: dict[str, Any]) -> bool:
	return _as_number(value) is not None


def is_url(value: Any, args: dict[str, Any]) -> bool:
	if not isinstance(value, str):
		return False
	try:
		parsed = urlparse(value)
	except ValueError:
		return False
	return bool(parsed.scheme) and bool(parsed.netloc)


def matches_other(value: Any, args: dict[str, Any]) -> bool:
	return values_equal(value, args.get("other"))


BUILTIN_CHECKS: dict[str, CheckFunction] = {
	"required": is_required,
	"email": is_email,
	"minLength": has_min_length,
	"maxLength": has_max_length,
	"pattern": matches_pattern,
	"min": is_at_least,
	"max": is_at_most,
	"numeric": is_numeric,
	"url": is_url,
	"matches": matches_other,
}


# ====================
# Validators
# ====================
class FieldValidator:
	path: StatePath
	checks: list[ValidationCheck]
	errors: list[str]

	def __init__(
		self,
		path: StatePath,
		checks: Sequence[ValidationCheck],
		*,
		custom: Mapping[str, CheckFunction] | None = None,
		functions: Mapping[str, ComputedFunction] | None = None,
		errors: Errors | None = None,
	) -> None:
		self.path = path
		self.checks = [check for check in checks if isinstance(check, dict)]
		self.errors = []
		self._custom = custom or {}
		self._functions = functions or {}
		self._reporter = errors or default_errors

	def _lookup(self, check_type: str) -> CheckFunction | None:
		return self._custom.get(check_type) or BUILTIN_CHECKS.get(check_type)

	def validate(self, snapshot: Any) -> list[str]:
		value = get_by_path(snapshot, self.path)
		ctx = ResolveContext(snapshot, functions=self._functions, errors=self._reporter)
		failures: list[str] = []
		for check in self.checks:
			check_type = check.get("type")
			fn = self._lookup(check_type) if isinstance(check_type, str) else None
			if fn is None:
				self._reporter.warn(
					f"Unknown validation check '{check_type}'",
					code="validation",
					details={"path": self.path, "check": check_type},
				)
				continue
			args = {
				name: resolve_value(arg, ctx)
				for name, arg in (check.get("args") or {}).items()
			}
			if not fn(value, args):
				failures.append(check.get("message", ""))
		self.errors = failures
		return failures


class ValidationRegistry:
	"""Field validators of the currently mounted inputs, keyed by state path."""

	_validators: dict[StatePath, FieldValidator]

	def __init__(
		self,
		*,
		checks: Mapping[str, CheckFunction] | None = None,
		functions: Mapping[str, ComputedFunction] | None = None,
		errors: Errors | None = None,
	) -> None:
		self._validators = {}
		self.custom_checks: dict[str, CheckFunction] = dict(checks or {})
		self.functions = functions or {}
		self._errors = errors or default_errors

	def register_check(self, name: str, fn: CheckFunction) -> None:
		self.custom_checks[name] = fn

	def create(self, path: StatePath, checks: Sequence[ValidationCheck]) -> FieldValidator:
		return FieldValidator(
			path,
			checks,
			custom=self.custom_checks,
			functions=self.functions,
			errors=self._errors,
		)

	def register(self, validator: FieldValidator) -> Callable[[], None]:
		self._validators[validator.path] = validator

		def unregister() -> None:
			if self._validators.get(validator.path) is validator:
				del self._validators[validator.path]

		return unregister

	def get(self, path: StatePath) -> FieldValidator | None:
		return self._validators.get(path)

	@property
	def paths(self) -> list[StatePath]:
		return list(self._validators)

	def validate_field(self, path: StatePath, snapshot: Any) -> list[str]:
		validator = self._validators.get(path)
		if validator is None:
			return []
		return validator.validate(snapshot)

	def validate_all(self, snapshot: Any) -> FormValidationResult:
		errors: dict[StatePath, list[str]] = {}
		for path, validator in self._validators.items():
			failures = validator.validate(snapshot)
			if failures:
				errors[path] = failures
		return {"valid": not errors, "errors": errors}


__all__ = [
	"BUILTIN_CHECKS",
	"CheckFunction",
	"FieldValidator",
	"ValidationRegistry",
]
