from typing import Any

import pytest
from json_render.errors import Diagnostic
from json_render.types import ValidationCheck
from json_render.validation import BUILTIN_CHECKS, FieldValidator, ValidationRegistry

EMAIL_REQUIRED: list[ValidationCheck] = [
	{"type": "required", "message": "Email is required"},
	{"type": "email", "message": "Enter a valid email"},
]


@pytest.mark.parametrize(
	("check", "value", "args", "expected"),
	[
		("required", "", {}, False),
		("required", "   ", {}, False),
		("required", None, {}, False),
		("required", [], {}, False),
		("required", 0, {}, True),
		("required", False, {}, True),
		("email", "a@b.com", {}, True),
		("email", "not-an-email", {}, False),
		("minLength", "abc", {"min": 3}, True),
		("minLength", "ab", {"min": 3}, False),
		("maxLength", "abcd", {"max": 3}, False),
		("maxLength", [1, 2], {"max": 3}, True),
		("pattern", "abc123", {"pattern": "^[a-z]+\\d+$"}, True),
		("pattern", "abc", {"pattern": "^\\d+$"}, False),
		("pattern", "abc", {"pattern": "("}, False),
		("min", 5, {"min": 3}, True),
		("min", "2", {"min": 3}, False),
		("max", 5, {"max": 3}, False),
		("numeric", "3.14", {}, True),
		("numeric", "abc", {}, False),
		("numeric", True, {}, False),
		("url", "https://example.com/x", {}, True),
		("url", "example.com", {}, False),
		("matches", "secret", {"other": "secret"}, True),
		("matches", "secret", {"other": "other"}, False),
	],
)
def test_builtin_checks(check: str, value: Any, args: dict[str, Any], expected: bool):
	assert BUILTIN_CHECKS[check](value, args) is expected


def test_validator_collects_every_failure_in_order():
	validator = FieldValidator(
		"/password",
		[
			{"type": "required", "message": "Required"},
			{"type": "minLength", "message": "Too short", "args": {"min": 8}},
			{"type": "pattern", "message": "Needs a digit", "args": {"pattern": "\\d"}},
		],
	)
	assert validator.validate({"password": "abc"}) == ["Too short", "Needs a digit"]
	assert validator.errors == ["Too short", "Needs a digit"]
	assert validator.validate({"password": "abcdefg1"}) == []


def test_check_args_resolve_against_state():
	validator = FieldValidator(
		"/confirm",
		[
			{
				"type": "matches",
				"message": "Passwords differ",
				"args": {"other": {"$state": "/password"}},
			}
		],
	)
	assert validator.validate({"password": "x", "confirm": "y"}) == ["Passwords differ"]
	assert validator.validate({"password": "x", "confirm": "x"}) == []


def test_unknown_check_passes_and_is_reported(diagnostics: list[Diagnostic]):
	validator = FieldValidator("/a", [{"type": "isPrime", "message": "Not prime"}])
	assert validator.validate({"a": 4}) == []
	assert diagnostics[0]["code"] == "validation"
	assert diagnostics[0]["details"] == {"path": "/a", "check": "isPrime"}


def test_custom_checks():
	registry = ValidationRegistry(checks={"even": lambda value, args: value % 2 == 0})
	registry.register(registry.create("/n", [{"type": "even", "message": "Must be even"}]))
	assert registry.validate_all({"n": 3}) == {
		"valid": False,
		"errors": {"/n": ["Must be even"]},
	}
	registry.register_check("even", lambda value, args: True)
	assert registry.validate_all({"n": 3})["valid"] is True


def test_validate_form_aggregates_mounted_fields():
	registry = ValidationRegistry()
	registry.register(registry.create("/form/email", EMAIL_REQUIRED[:1]))
	assert registry.validate_all({"form": {"email": ""}}) == {
		"valid": False,
		"errors": {"/form/email": ["Email is required"]},
	}
	assert registry.validate_all({"form": {"email": "a@b.com"}}) == {
		"valid": True,
		"errors": {},
	}


def test_unregister_removes_only_its_own_validator():
	registry = ValidationRegistry()
	first = registry.create("/a", EMAIL_REQUIRED)
	second = registry.create("/a", EMAIL_REQUIRED[:1])
	unregister_first = registry.register(first)
	registry.register(second)
	unregister_first()
	assert registry.get("/a") is second
	assert registry.paths == ["/a"]
	assert registry.validate_field("/a", {"a": ""}) == ["Email is required"]
	assert registry.validate_field("/missing", {}) == []
