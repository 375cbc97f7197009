from typing import Any

from json_render.pointer import (
	add_by_path,
	assoc_path,
	escape_segment,
	get_by_path,
	has_path,
	parse_pointer,
	remove_by_path,
	set_by_path,
	unescape_segment,
)


def test_parse_pointer_root_and_leading_slash():
	assert parse_pointer("") == []
	assert parse_pointer("/") == []
	assert parse_pointer("/a/b") == ["a", "b"]
	assert parse_pointer("a/b") == ["a", "b"]


def test_unescape_order():
	assert unescape_segment("a~1b") == "a/b"
	assert unescape_segment("m~0n") == "m~n"
	# ~01 is a literal "~1", not a slash
	assert unescape_segment("~01") == "~1"
	assert escape_segment("a/b~c") == "a~1b~0c"


def test_get_with_escaped_segments():
	doc = {"a/b": {"m~n": 7}}
	assert get_by_path(doc, "/a~1b/m~0n") == 7


def test_get_missing_returns_default():
	doc = {"user": {"name": "Alice"}, "items": [1, 2]}
	assert get_by_path(doc, "/user/age") is None
	assert get_by_path(doc, "/user/age", 0) == 0
	assert get_by_path(doc, "/items/5") is None
	assert get_by_path(doc, "/items/x") is None
	# Traversal through a scalar
	assert get_by_path(doc, "/user/name/first") is None
	assert get_by_path(doc, "") is doc


def test_has_path_distinguishes_stored_none():
	doc = {"a": None}
	assert has_path(doc, "/a")
	assert not has_path(doc, "/b")


def test_set_creates_intermediate_mappings():
	doc: dict[str, Any] = {}
	set_by_path(doc, "/form/email", "a@b.com")
	assert doc == {"form": {"email": "a@b.com"}}
	set_by_path(doc, "/form/email", "c@d.com")
	assert doc == {"form": {"email": "c@d.com"}}


def test_set_replaces_scalar_intermediate():
	doc: dict[str, Any] = {"a": 1}
	set_by_path(doc, "/a/b", 2)
	assert doc == {"a": {"b": 2}}


def test_set_on_list_index_and_append():
	doc: dict[str, Any] = {"items": ["a", "b"]}
	set_by_path(doc, "/items/0", "z")
	set_by_path(doc, "/items/-", "c")
	set_by_path(doc, "/items/3", "d")
	assert doc["items"] == ["z", "b", "c", "d"]


def test_set_then_get_round_trip():
	doc: dict[str, Any] = {"x": [{"y": 1}]}
	set_by_path(doc, "/x/0/y", {"deep": True})
	assert get_by_path(doc, "/x/0/y") == {"deep": True}


def test_add_inserts_into_lists():
	doc: dict[str, Any] = {"items": ["a", "c"]}
	add_by_path(doc, "/items/1", "b")
	assert doc["items"] == ["a", "b", "c"]
	add_by_path(doc, "/items/-", "d")
	assert doc["items"] == ["a", "b", "c", "d"]
	# Past the end appends
	add_by_path(doc, "/items/10", "e")
	assert doc["items"] == ["a", "b", "c", "d", "e"]


def test_add_at_root_replaces_contents():
	doc: dict[str, Any] = {"old": 1}
	add_by_path(doc, "", {"new": 2})
	assert doc == {"new": 2}


def test_remove_is_idempotent():
	doc: dict[str, Any] = {"a": {"b": 1}, "items": [1, 2, 3]}
	remove_by_path(doc, "/a/b")
	remove_by_path(doc, "/a/b")
	remove_by_path(doc, "/missing/deep")
	remove_by_path(doc, "/items/1")
	remove_by_path(doc, "/items/9")
	assert doc == {"a": {}, "items": [1, 3]}


def test_assoc_path_leaves_original_untouched():
	shared = {"keep": [1, 2]}
	doc = {"form": {"email": ""}, "other": shared}
	updated = assoc_path(doc, "/form/email", "x@y.z")
	assert doc["form"]["email"] == ""
	assert updated["form"]["email"] == "x@y.z"
	# Untouched branches are shared
	assert updated["other"] is shared


def test_assoc_path_into_list():
	doc = {"todos": [{"done": False}, {"done": False}]}
	updated = assoc_path(doc, "/todos/1/done", True)
	assert updated["todos"][1]["done"] is True
	assert doc["todos"][1]["done"] is False
	assert updated["todos"][0] is doc["todos"][0]
