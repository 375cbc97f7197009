"""
Watchers: fire action bindings when the value at a state path changes.

Mounting records the current value at every watched path without firing.
Each later snapshot fires the bindings of every path whose value differs
from the recorded one, then records the new value. Paths are independent.
"""

import copy
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from json_render.actions import normalize_bindings
from json_render.helpers import values_equal
from json_render.pointer import get_by_path
from json_render.types import ActionBinding, StatePath


@dataclass(slots=True)
class WatchRecord:
	path: StatePath
	bindings: list[ActionBinding]
	value: Any


@dataclass(slots=True, frozen=True)
class WatchEvent:
	instance_id: str
	path: StatePath
	bindings: list[ActionBinding]
	value: Any


class WatchDispatcher:
	_records: dict[str, dict[StatePath, WatchRecord]]

	def __init__(self, on_fire: Callable[[WatchEvent], None]) -> None:
		self.on_fire = on_fire
		self._records = {}

	def mount(self, instance_id: str, watch_map: Mapping[str, Any], snapshot: Any) -> None:
		"""Arm the watchers of one element instance.

		Remounting keeps the recorded value of paths that are still watched,
		so a re-render never fires or re-arms them.
		"""
		previous = self._records.get(instance_id, {})
		records: dict[StatePath, WatchRecord] = {}
		for path, raw_bindings in watch_map.items():
			bindings = normalize_bindings(raw_bindings)
			if not bindings:
				continue
			existing = previous.get(path)
			if existing is not None:
				existing.bindings = bindings
				records[path] = existing
			else:
				value = copy.deepcopy(get_by_path(snapshot, path))
				records[path] = WatchRecord(path, bindings, value)
		self._records[instance_id] = records

	def unmount(self, instance_id: str) -> None:
		self._records.pop(instance_id, None)

	def is_mounted(self, instance_id: str) -> bool:
		return instance_id in self._records

	@property
	def instance_ids(self) -> list[str]:
		return list(self._records)

	def notify(self, snapshot: Any) -> list[WatchEvent]:
		events: list[WatchEvent] = []
		for instance_id, records in self._records.items():
			for record in records.values():
				current = get_by_path(snapshot, record.path)
				if values_equal(current, record.value):
					continue
				record.value = copy.deepcopy(current)
				events.append(
					WatchEvent(instance_id, record.path, list(record.bindings), current)
				)
		# Records are settled before any handler runs
		for event in events:
			self.on_fire(event)
		return events


__all__ = ["WatchDispatcher", "WatchEvent", "WatchRecord"]
