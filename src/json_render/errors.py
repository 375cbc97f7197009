from __future__ import annotations

import logging
import traceback
from collections.abc import Callable
from typing import Any, Literal, TypedDict

logger = logging.getLogger(__name__)

ErrorCode = Literal[
	"stream.parse",
	"stream.test",
	"expression.computed",
	"visibility",
	"action",
	"action.unknown",
	"watch",
	"validation",
	"transport",
	"render",
]


class JsonRenderError(Exception):
	"""Base class for errors raised by json_render."""


class InvalidPatchError(JsonRenderError, ValueError):
	def __init__(self, patch: Any) -> None:
		self.patch = patch
		op = patch.get("op") if isinstance(patch, dict) else None
		super().__init__(f"Unsupported patch operation: {op!r}")


class TestOperationFailed(JsonRenderError):
	"""A `test` patch did not match the document. Nothing was mutated."""

	# Keep pytest from collecting this class
	__test__ = False

	path: str
	expected: Any
	actual: Any

	def __init__(self, path: str, expected: Any = None, actual: Any = None) -> None:
		self.path = path
		self.expected = expected
		self.actual = actual
		super().__init__(f'Test operation failed: value at "{path}" does not match')


class StreamHTTPError(JsonRenderError):
	def __init__(self, message: str, status_code: int | None = None) -> None:
		self.status_code = status_code
		super().__init__(message)


class Diagnostic(TypedDict):
	code: ErrorCode
	message: str
	details: dict[str, Any]
	# Formatted traceback, empty for warnings
	stack: str


DiagnosticListener = Callable[[Diagnostic], None]


def _format_stack(exc: BaseException) -> str:
	return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


class Errors:
	"""Error reporter for contained, non-fatal failures.

	Every report is logged. Listeners (a renderer, a test) receive a
	`Diagnostic` payload for each report.
	"""

	__slots__: tuple[str, ...] = ("_listeners",)
	_listeners: list[DiagnosticListener]

	def __init__(self) -> None:
		self._listeners = []

	def subscribe(self, listener: DiagnosticListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def warn(
		self,
		message: str,
		*,
		code: ErrorCode,
		details: dict[str, Any] | None = None,
	) -> None:
		payload_details = dict(details) if details is not None else {}
		logger.warning(
			"json-render warning code=%s message=%s details=%s",
			code,
			message,
			payload_details,
		)
		self._forward(
			{"code": code, "message": message, "details": payload_details, "stack": ""}
		)

	def report(
		self,
		exc: BaseException,
		*,
		code: ErrorCode,
		details: dict[str, Any] | None = None,
		message: str | None = None,
	) -> None:
		payload_details = dict(details) if details is not None else {}
		payload_message = message or str(exc)
		stack = _format_stack(exc)
		logger.error(
			"json-render error code=%s message=%s details=%s\n%s",
			code,
			payload_message,
			payload_details,
			stack,
		)
		self._forward(
			{
				"code": code,
				"message": payload_message,
				"details": payload_details,
				"stack": stack,
			}
		)

	def _forward(self, diagnostic: Diagnostic) -> None:
		for listener in list(self._listeners):
			try:
				listener(diagnostic)
			except Exception as send_exc:
				logger.exception(
					"Failed to forward diagnostic to listener",
					exc_info=send_exc,
				)


# Process-wide reporter used when no explicit reporter is passed
errors = Errors()


__all__ = [
	"Diagnostic",
	"DiagnosticListener",
	"ErrorCode",
	"Errors",
	"InvalidPatchError",
	"JsonRenderError",
	"StreamHTTPError",
	"TestOperationFailed",
	"errors",
]
