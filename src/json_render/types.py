from typing import Any, Literal, NotRequired, TypeAlias, TypedDict

# ====================
# Documents
# ====================
JsonPrimitive: TypeAlias = str | int | float | bool | None
JsonValue: TypeAlias = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]
Document: TypeAlias = dict[str, Any] | list[Any]
StatePath: TypeAlias = str
ElementKey: TypeAlias = str


# ====================
# Patches
# ====================
PatchOp = Literal["add", "remove", "replace", "move", "copy", "test"]

PATCH_OPS: frozenset[str] = frozenset(
	("add", "remove", "replace", "move", "copy", "test")
)


# "from" is a keyword, hence the functional form
JsonPatch = TypedDict(
	"JsonPatch",
	{
		"op": PatchOp,
		"path": str,
		"value": NotRequired[Any],
		"from": NotRequired[str],
	},
)


class TokenUsage(TypedDict):
	promptTokens: int
	completionTokens: int
	totalTokens: int


# ====================
# Spec
# ====================
class ActionBinding(TypedDict):
	action: str
	params: NotRequired[dict[str, Any]]


class RepeatConfig(TypedDict):
	statePath: StatePath
	key: NotRequired[str]


VisibilityCondition: TypeAlias = bool | dict[str, Any] | list[Any]


class Element(TypedDict):
	type: str
	props: dict[str, Any]
	children: NotRequired[list[ElementKey]]
	visible: NotRequired[VisibilityCondition]
	on: NotRequired[dict[str, ActionBinding | list[ActionBinding]]]
	watch: NotRequired[dict[StatePath, ActionBinding | list[ActionBinding]]]
	repeat: NotRequired[RepeatConfig]


class Spec(TypedDict):
	root: ElementKey
	elements: dict[ElementKey, Element]
	state: NotRequired[dict[str, Any]]


class FlatElement(TypedDict):
	key: ElementKey
	parentKey: NotRequired[ElementKey | None]
	type: str
	props: dict[str, Any]
	visible: NotRequired[VisibilityCondition]


class ValidationCheck(TypedDict):
	type: str
	message: str
	args: NotRequired[dict[str, Any]]


class FormValidationResult(TypedDict):
	valid: bool
	errors: dict[StatePath, list[str]]


# ====================
# Rendered output
# ====================
class RenderedElement(TypedDict):
	# Instance id, unique per repeat item
	id: str
	key: str
	type: str
	props: dict[str, Any]
	bindings: dict[str, StatePath]
	children: list["RenderedElement"]


# ====================
# AI SDK message parts
# ====================
SPEC_DATA_PART_TYPE = "data-spec"


class DataPart(TypedDict):
	type: str
	text: NotRequired[str]
	data: NotRequired[Any]


__all__ = [
	"PATCH_OPS",
	"SPEC_DATA_PART_TYPE",
	"ActionBinding",
	"DataPart",
	"Document",
	"Element",
	"ElementKey",
	"FlatElement",
	"FormValidationResult",
	"JsonPatch",
	"JsonPrimitive",
	"JsonValue",
	"PatchOp",
	"RenderedElement",
	"RepeatConfig",
	"Spec",
	"StatePath",
	"TokenUsage",
	"ValidationCheck",
	"VisibilityCondition",
]
