"""
Spec renderer.

Walks a spec from its root and produces a tree of `RenderedElement`s with
resolved props and binding paths. The renderer subscribes to its state
store: every change re-renders, then fires the watchers whose paths changed.
Element lifecycle follows the rendered tree. An element that appears gets
its watchers armed and its field validator registered; an element that
disappears (hidden, removed, or its repeat item gone) releases both.

Instance ids are element keys, prefixed inside repeat scopes by the
repeated element's id and the item identity, e.g. `todos[a1]/title`.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias

from json_render.actions import ActionDispatcher, ActionHandler
from json_render.errors import Errors, errors as default_errors
from json_render.expressions import (
	ComputedFunction,
	RepeatScope,
	ResolveContext,
	resolve_props,
)
from json_render.helpers import to_js_string, values_equal
from json_render.pointer import escape_segment, get_by_path
from json_render.scheduling import TaskRegistry
from json_render.state import InMemoryStateStore, StateStore
from json_render.stream import empty_spec
from json_render.types import Element, RenderedElement, Spec, StatePath
from json_render.validation import CheckFunction, FieldValidator, ValidationRegistry
from json_render.visibility import is_visible
from json_render.watch import WatchDispatcher, WatchEvent

logger = logging.getLogger(__name__)

RenderPath: TypeAlias = str
RenderListener: TypeAlias = Callable[[RenderedElement | None], None]


@dataclass(slots=True)
class MountedElement:
	id: RenderPath
	key: str
	repeat: RepeatScope | None
	bindings: dict[str, StatePath]
	validator: FieldValidator | None = None
	unregister_validator: Callable[[], None] | None = None


class SpecRenderer:
	spec: Spec
	store: StateStore
	tree: RenderedElement | None
	_mounted: dict[RenderPath, MountedElement]
	_listeners: list[RenderListener]

	def __init__(
		self,
		spec: Spec | None = None,
		*,
		store: StateStore | None = None,
		handlers: Mapping[str, ActionHandler] | None = None,
		functions: Mapping[str, ComputedFunction] | None = None,
		checks: Mapping[str, CheckFunction] | None = None,
		validation_path: str | None = None,
		errors: Errors | None = None,
	) -> None:
		self.errors = errors or default_errors
		self.spec = spec if spec is not None else empty_spec()
		state = self.spec.get("state")
		self._spec_state = copy.deepcopy(state) if isinstance(state, dict) else {}
		self.store = (
			store
			if store is not None
			else InMemoryStateStore(self._spec_state, errors=self.errors)
		)
		self.functions = dict(functions or {})
		self.tasks = TaskRegistry("renderer")
		self.validation = ValidationRegistry(
			checks=checks, functions=self.functions, errors=self.errors
		)
		self.actions = ActionDispatcher(
			self.store,
			handlers=handlers,
			functions=self.functions,
			validation=self.validation,
			validation_path=validation_path,
			tasks=self.tasks,
			errors=self.errors,
		)
		self.watchers = WatchDispatcher(self._on_watch)
		self.tree = None
		self._mounted = {}
		self._listeners = []
		self._closed = False
		self._unsubscribe = self.store.subscribe(self._on_state_change)
		self.render()

	# ====================
	# Rendering
	# ====================
	def render(self) -> RenderedElement | None:
		snapshot = self.store.get_snapshot()
		ctx = ResolveContext(snapshot, functions=self.functions, errors=self.errors)
		seen: set[RenderPath] = set()
		root = self.spec.get("root")
		tree = self._render_element(root, ctx, "", seen, ()) if root else None

		for instance_id in [i for i in self._mounted if i not in seen]:
			self._unmount(instance_id)

		self.tree = tree
		for listener in list(self._listeners):
			listener(tree)
		return tree

	def _render_element(
		self,
		key: str,
		ctx: ResolveContext,
		prefix: str,
		seen: set[RenderPath],
		ancestors: tuple[str, ...],
	) -> RenderedElement | None:
		element = (self.spec.get("elements") or {}).get(key)
		if not isinstance(element, dict):
			logger.debug("Skipping missing element '%s'", key)
			return None
		if key in ancestors:
			self.errors.warn(
				f"Element '{key}' lists itself among its ancestors",
				code="render",
				details={"key": key},
			)
			return None
		if not self._is_visible(element, ctx):
			return None

		instance_id = prefix + key
		props, bindings = resolve_props(element.get("props"), ctx)
		seen.add(instance_id)
		self._mount(instance_id, key, element, ctx, props, bindings)

		chain = (*ancestors, key)
		children: list[RenderedElement] = []
		repeat = element.get("repeat")
		if isinstance(repeat, dict) and isinstance(repeat.get("statePath"), str):
			items = get_by_path(ctx.state, repeat["statePath"])
			used: set[str] = set()
			for index, item in enumerate(items if isinstance(items, list) else []):
				identity = _item_identity(item, index, repeat.get("key"), used)
				scope = RepeatScope(item, index, repeat["statePath"])
				item_ctx = ctx.with_repeat(scope)
				for child_key in element.get("children") or []:
					child = self._render_element(
						child_key, item_ctx, f"{instance_id}[{identity}]/", seen, chain
					)
					if child is not None:
						children.append(child)
		else:
			for child_key in element.get("children") or []:
				child = self._render_element(child_key, ctx, prefix, seen, chain)
				if child is not None:
					children.append(child)

		return {
			"id": instance_id,
			"key": key,
			"type": element.get("type", ""),
			"props": props,
			"bindings": bindings,
			"children": children,
		}

	def _is_visible(self, element: Element, ctx: ResolveContext) -> bool:
		return is_visible(element.get("visible"), ctx.state, errors=self.errors)

	# ====================
	# Lifecycle
	# ====================
	def _mount(
		self,
		instance_id: RenderPath,
		key: str,
		element: Element,
		ctx: ResolveContext,
		props: dict[str, Any],
		bindings: dict[str, StatePath],
	) -> None:
		mounted = self._mounted.get(instance_id)
		if mounted is not None and mounted.key != key:
			self._unmount(instance_id)
			mounted = None
		if mounted is None:
			mounted = MountedElement(instance_id, key, ctx.repeat, bindings)
			self._mounted[instance_id] = mounted
		else:
			mounted.repeat = ctx.repeat
			mounted.bindings = bindings

		watch_map = element.get("watch")
		if isinstance(watch_map, dict) and watch_map:
			self.watchers.mount(instance_id, watch_map, ctx.state)
		else:
			self.watchers.unmount(instance_id)
		self._mount_validator(mounted, props, bindings)

	def _mount_validator(
		self,
		mounted: MountedElement,
		props: dict[str, Any],
		bindings: dict[str, StatePath],
	) -> None:
		checks = props.get("checks")
		path = bindings.get("value")
		if not (isinstance(checks, list) and checks and path):
			self._drop_validator(mounted)
			return
		current = mounted.validator
		if (
			current is not None
			and current.path == path
			and values_equal(current.checks, checks)
			and self.validation.get(path) is current
		):
			return
		self._drop_validator(mounted)
		validator = self.validation.create(path, checks)
		mounted.validator = validator
		mounted.unregister_validator = self.validation.register(validator)

	def _drop_validator(self, mounted: MountedElement) -> None:
		if mounted.unregister_validator is not None:
			mounted.unregister_validator()
		mounted.validator = None
		mounted.unregister_validator = None

	def _unmount(self, instance_id: RenderPath) -> None:
		mounted = self._mounted.pop(instance_id, None)
		self.watchers.unmount(instance_id)
		if mounted is not None:
			self._drop_validator(mounted)

	@property
	def mounted(self) -> list[RenderPath]:
		return list(self._mounted)

	# ====================
	# State changes
	# ====================
	def _on_state_change(self, snapshot: Any) -> None:
		if self._closed:
			return
		self.render()
		self.watchers.notify(self.store.get_snapshot())

	def _on_watch(self, event: WatchEvent) -> None:
		mounted = self._mounted.get(event.instance_id)
		self.actions.dispatch(
			event.bindings,
			repeat=mounted.repeat if mounted is not None else None,
			source={
				"path": event.path,
				"element": mounted.key if mounted is not None else event.instance_id,
			},
		)

	# ====================
	# Public API
	# ====================
	def subscribe(self, listener: RenderListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def emit(self, instance_id: RenderPath, event: str):
		"""Run the `on` bindings of a mounted element for `event`."""
		mounted = self._mounted.get(instance_id)
		if mounted is None:
			logger.debug("emit(%s, %s) on an element that is not mounted", instance_id, event)
			return None
		element = (self.spec.get("elements") or {}).get(mounted.key) or {}
		handlers = element.get("on")
		bindings = handlers.get(event) if isinstance(handlers, dict) else None
		return self.actions.dispatch(
			bindings,
			repeat=mounted.repeat,
			source={"event": event, "element": mounted.key},
		)

	def set_bound_value(self, instance_id: RenderPath, prop: str, value: Any) -> bool:
		"""Write a bound prop back to state. Unbound props are left alone."""
		mounted = self._mounted.get(instance_id)
		path = mounted.bindings.get(prop) if mounted is not None else None
		if path is None:
			return False
		self.store.set(path, value)
		return True

	def validate_field(self, instance_id: RenderPath) -> list[str]:
		mounted = self._mounted.get(instance_id)
		if mounted is None or mounted.validator is None:
			return []
		return mounted.validator.validate(self.store.get_snapshot())

	def set_spec(self, spec: Spec) -> RenderedElement | None:
		"""Swap in a new spec, e.g. after each streamed patch.

		Top-level state keys whose value changed in the spec are written to
		the store; keys the spec left unchanged keep any user edits.
		"""
		self.spec = spec
		state = spec.get("state")
		if isinstance(state, dict):
			updates = {
				"/" + escape_segment(name): copy.deepcopy(value)
				for name, value in state.items()
				if name not in self._spec_state
				or not values_equal(self._spec_state[name], value)
			}
			self._spec_state = copy.deepcopy(state)
			if updates:
				self.store.update(updates)
		return self.render()

	def find(self, instance_id: RenderPath) -> RenderedElement | None:
		stack = [self.tree] if self.tree is not None else []
		while stack:
			node = stack.pop()
			if node["id"] == instance_id:
				return node
			stack.extend(node["children"])
		return None

	async def settle(self) -> None:
		"""Wait for every scheduled action sequence, including ones they trigger."""
		await self.tasks.wait()

	def close(self) -> None:
		self._closed = True
		self._unsubscribe()
		for instance_id in list(self._mounted):
			self._unmount(instance_id)
		self.tasks.cancel_all()
		self.tree = None


def _item_identity(item: Any, index: int, key_field: Any, used: set[str]) -> str:
	identity = str(index)
	if isinstance(key_field, str) and isinstance(item, dict) and key_field in item:
		identity = to_js_string(item[key_field])
	if identity in used:
		identity = f"{identity}#{index}"
	used.add(identity)
	return identity


__all__ = ["MountedElement", "RenderListener", "RenderPath", "SpecRenderer"]
