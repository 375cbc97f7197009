from typing import Any

from json_render.errors import Diagnostic
from json_render.pointer import has_path
from json_render.state import InMemoryStateStore, StateStore, create_state_store


def test_store_satisfies_protocol():
	assert isinstance(create_state_store(), StateStore)


def test_initial_state_is_copied():
	initial = {"form": {"email": ""}}
	store = InMemoryStateStore(initial)
	store.set("/form/email", "a@b.com")
	assert initial == {"form": {"email": ""}}
	assert store.get("/form/email") == "a@b.com"


def test_snapshots_are_copy_on_write():
	store = InMemoryStateStore({"a": {"b": 1}, "c": [1]})
	before = store.get_snapshot()
	store.set("/a/b", 2)
	after = store.get_snapshot()
	assert before["a"]["b"] == 1
	assert after["a"]["b"] == 2
	assert after["c"] is before["c"]


def test_subscribers_receive_snapshot():
	store = InMemoryStateStore()
	seen: list[Any] = []
	unsubscribe = store.subscribe(seen.append)
	store.set("/x", 1)
	assert seen == [{"x": 1}]
	unsubscribe()
	store.set("/x", 2)
	assert len(seen) == 1


def test_unchanged_writes_do_not_notify():
	store = InMemoryStateStore({"x": {"y": [1, 2]}})
	calls: list[Any] = []
	store.subscribe(calls.append)
	store.set("/x/y", [1, 2])
	assert calls == []


def test_update_notifies_once():
	store = InMemoryStateStore()
	calls: list[Any] = []
	store.subscribe(calls.append)
	store.update({"/a": 1, "/b": 2})
	assert calls == [{"a": 1, "b": 2}]


def test_batch_defers_until_outermost_exit():
	store = InMemoryStateStore()
	calls: list[Any] = []
	store.subscribe(calls.append)
	with store.batch():
		store.set("/a", 1)
		with store.batch():
			store.set("/b", 2)
		assert calls == []
	assert calls == [{"a": 1, "b": 2}]


def test_replace_swaps_document():
	store = InMemoryStateStore({"a": 1})
	calls: list[Any] = []
	store.subscribe(calls.append)
	store.replace({"b": 2})
	assert store.get_snapshot() == {"b": 2}
	assert calls == [{"b": 2}]


def test_failing_listener_is_reported(diagnostics: list[Diagnostic]):
	store = InMemoryStateStore()
	received: list[Any] = []

	def broken(snapshot: Any) -> None:
		raise ValueError("listener")

	store.subscribe(broken)
	store.subscribe(received.append)
	store.set("/a", 1)
	assert received == [{"a": 1}]
	assert diagnostics[0]["code"] == "render"


def test_writing_none_creates_missing_key():
	store = InMemoryStateStore({"a": 1})
	calls: list[Any] = []
	store.subscribe(calls.append)
	store.set("/x", None)
	assert has_path(store.get_snapshot(), "/x")
	assert calls == [{"a": 1, "x": None}]
	store.set("/x", None)
	assert len(calls) == 1
