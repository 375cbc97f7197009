"""
State store: the single owner of the state document for one render tree.

Writes are copy-on-write, so every snapshot handed out stays valid after
later writes and successive snapshots can be compared by identity along
untouched branches. Subscribers are notified synchronously after each write;
inside `store.batch()` notifications are deferred until the outermost batch
exits and then delivered once.
"""

import copy
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable

from json_render.errors import Errors, errors as default_errors
from json_render.helpers import MISSING, values_equal
from json_render.pointer import assoc_path, get_by_path

StateListener = Callable[[Any], None]


@runtime_checkable
class StateStore(Protocol):
	def get(self, path: str) -> Any: ...
	def set(self, path: str, value: Any) -> None: ...
	def update(self, updates: Mapping[str, Any]) -> None: ...
	def get_snapshot(self) -> Any: ...
	def subscribe(self, listener: StateListener) -> Callable[[], None]: ...


class InMemoryStateStore:
	_snapshot: dict[str, Any]
	_listeners: list[StateListener]
	_batch_depth: int
	_dirty: bool

	def __init__(
		self,
		initial: Mapping[str, Any] | None = None,
		*,
		errors: Errors | None = None,
	) -> None:
		self._snapshot = copy.deepcopy(dict(initial)) if initial is not None else {}
		self._listeners = []
		self._batch_depth = 0
		self._dirty = False
		self._errors = errors or default_errors

	def get(self, path: str) -> Any:
		return get_by_path(self._snapshot, path)

	def get_snapshot(self) -> dict[str, Any]:
		return self._snapshot

	def set(self, path: str, value: Any) -> None:
		if self._write(path, value):
			self._notify()

	def update(self, updates: Mapping[str, Any]) -> None:
		changed = False
		for path, value in updates.items():
			changed = self._write(path, value) or changed
		if changed:
			self._notify()

	def replace(self, state: Mapping[str, Any]) -> None:
		"""Swap the whole document, e.g. when a new spec carries fresh state."""
		self._snapshot = copy.deepcopy(dict(state))
		self._notify()

	def subscribe(self, listener: StateListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	@contextmanager
	def batch(self) -> Iterator["InMemoryStateStore"]:
		self._batch_depth += 1
		try:
			yield self
		finally:
			self._batch_depth -= 1
			if self._batch_depth == 0 and self._dirty:
				self._dirty = False
				self._flush()

	def _write(self, path: str, value: Any) -> bool:
		current = get_by_path(self._snapshot, path, MISSING)
		if current is not MISSING and (current is value or values_equal(current, value)):
			return False
		self._snapshot = assoc_path(self._snapshot, path, value)
		return True

	def _notify(self) -> None:
		if self._batch_depth > 0:
			self._dirty = True
			return
		self._flush()

	def _flush(self) -> None:
		snapshot = self._snapshot
		for listener in list(self._listeners):
			try:
				listener(snapshot)
			except Exception as exc:
				self._errors.report(exc, code="render", message="State listener failed")


def create_state_store(initial: Mapping[str, Any] | None = None) -> InMemoryStateStore:
	return InMemoryStateStore(initial)


__all__ = [
	"InMemoryStateStore",
	"StateListener",
	"StateStore",
	"create_state_store",
]
