"""
Action dispatch for `on` events and `watch` firings.

The bindings of one entry run in declaration order, each awaited before the
next starts, with params resolved against the state at the moment that
binding runs. A failing handler is reported and ends its sequence. Separate
firings are scheduled as independent tasks.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeAlias

from json_render.env import env
from json_render.errors import Errors, errors as default_errors
from json_render.expressions import (
	ComputedFunction,
	RepeatScope,
	ResolveContext,
	resolve_action_params,
)
from json_render.scheduling import TaskRegistry, in_worker_thread, run_sync_or_async
from json_render.state import StateStore
from json_render.types import ActionBinding
from json_render.validation import ValidationRegistry

logger = logging.getLogger(__name__)

# Handlers receive resolved params and may return an awaitable
ActionHandler: TypeAlias = Callable[[dict[str, Any]], Any]


def normalize_bindings(value: Any) -> list[ActionBinding]:
	"""Accept a single binding or a list of them; drop malformed entries."""
	if value is None:
		return []
	if isinstance(value, dict):
		value = [value]
	if not isinstance(value, list):
		return []
	return [
		binding
		for binding in value
		if isinstance(binding, dict) and isinstance(binding.get("action"), str)
	]


def _require_state_path(action: str, params: Mapping[str, Any]) -> str:
	path = params.get("statePath")
	if not isinstance(path, str):
		raise ValueError(f"{action} requires a string 'statePath' param")
	return path


class ActionDispatcher:
	store: StateStore
	validation: ValidationRegistry
	tasks: TaskRegistry
	handlers: dict[str, ActionHandler]

	def __init__(
		self,
		store: StateStore,
		*,
		handlers: Mapping[str, ActionHandler] | None = None,
		functions: Mapping[str, ComputedFunction] | None = None,
		validation: ValidationRegistry | None = None,
		validation_path: str | None = None,
		tasks: TaskRegistry | None = None,
		errors: Errors | None = None,
	) -> None:
		self.store = store
		self.handlers = dict(handlers or {})
		self.functions = functions or {}
		self._errors = errors or default_errors
		self.validation = validation or ValidationRegistry(
			functions=self.functions, errors=self._errors
		)
		self.validation_path = validation_path or env.validation_path
		self.tasks = tasks or TaskRegistry("actions")
		self._builtins: dict[str, ActionHandler] = {
			"setState": self._set_state,
			"pushState": self._push_state,
			"removeState": self._remove_state,
			"validateForm": self._validate_form,
		}

	def register(self, name: str, handler: ActionHandler) -> Callable[[], None]:
		self.handlers[name] = handler

		def unregister() -> None:
			if self.handlers.get(name) is handler:
				del self.handlers[name]

		return unregister

	def resolve_handler(self, name: str) -> ActionHandler | None:
		return self._builtins.get(name) or self.handlers.get(name)

	async def execute(
		self,
		bindings: Any,
		*,
		repeat: RepeatScope | None = None,
		source: Mapping[str, Any] | None = None,
	) -> bool:
		"""Run a binding sequence. Returns False when a handler failed."""
		for binding in normalize_bindings(bindings):
			name = binding["action"]
			handler = self.resolve_handler(name)
			if handler is None:
				self._errors.warn(
					f"Unknown action '{name}'",
					code="action.unknown",
					details={"action": name, **(source or {})},
				)
				continue
			ctx = ResolveContext(
				self.store.get_snapshot(),
				repeat=repeat,
				functions=self.functions,
				errors=self._errors,
			)
			params = resolve_action_params(binding.get("params"), ctx)
			logger.debug("Running action %s with %s", name, params)
			try:
				result = handler(params)
				if inspect.isawaitable(result):
					await result
			except Exception as exc:
				self._errors.report(
					exc, code="action", details={"action": name, **(source or {})}
				)
				return False
		return True

	async def _execute_and_drain(
		self,
		bindings: Any,
		repeat: RepeatScope | None,
		source: Mapping[str, Any] | None,
	) -> bool:
		completed = await self.execute(bindings, repeat=repeat, source=source)
		# Firings scheduled by this sequence share its loop
		await self.tasks.wait()
		return completed

	def dispatch(
		self,
		bindings: Any,
		*,
		repeat: RepeatScope | None = None,
		source: Mapping[str, Any] | None = None,
	) -> asyncio.Task[bool] | None:
		"""Schedule a binding sequence.

		Inside an event loop the sequence runs as a tracked task, which is
		returned. From an anyio worker thread the task is scheduled on the loop
		that owns the thread. Without any loop it runs to completion before
		returning None.
		"""
		if not normalize_bindings(bindings):
			return None
		try:
			asyncio.get_running_loop()
		except RuntimeError:
			if not in_worker_thread():
				run_sync_or_async(self._execute_and_drain(bindings, repeat, source))
				return None
		label = (source or {}).get("event") or (source or {}).get("path") or "actions"
		return self.tasks.create(
			self.execute(bindings, repeat=repeat, source=source),
			name=f"json-render:{label}",
		)

	# ====================
	# Built-in actions
	# ====================
	def _set_state(self, params: dict[str, Any]) -> None:
		path = _require_state_path("setState", params)
		self.store.set(path, params.get("value"))

	def _push_state(self, params: dict[str, Any]) -> None:
		path = _require_state_path("pushState", params)
		current = self.store.get(path)
		items = list(current) if isinstance(current, list) else []
		items.append(params.get("value"))
		updates: dict[str, Any] = {path: items}
		clear_path = params.get("clearStatePath")
		if isinstance(clear_path, str):
			updates[clear_path] = ""
		self.store.update(updates)

	def _remove_state(self, params: dict[str, Any]) -> None:
		path = _require_state_path("removeState", params)
		index = params.get("index")
		current = self.store.get(path)
		if not isinstance(current, list):
			return
		if not isinstance(index, int) or isinstance(index, bool):
			raise ValueError("removeState requires an integer 'index' param")
		if 0 <= index < len(current):
			self.store.set(path, current[:index] + current[index + 1 :])

	def _validate_form(self, params: dict[str, Any]) -> None:
		path = params.get("statePath")
		if not isinstance(path, str) or not path:
			path = self.validation_path
		result = self.validation.validate_all(self.store.get_snapshot())
		self.store.set(path, result)


__all__ = ["ActionDispatcher", "ActionHandler", "normalize_bindings"]
