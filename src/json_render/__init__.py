from .actions import ActionDispatcher, ActionHandler, normalize_bindings
from .client import ChatMessage, ChatUI, UIStream
from .env import env
from .errors import (
	Diagnostic,
	ErrorCode,
	Errors,
	InvalidPatchError,
	JsonRenderError,
	StreamHTTPError,
	TestOperationFailed,
	errors,
)
from .expressions import (
	RepeatScope,
	ResolveContext,
	ResolvedProps,
	parse_expression,
	resolve_action_params,
	resolve_binding,
	resolve_props,
	resolve_value,
)
from .helpers import MISSING, is_truthy, to_js_string, values_equal
from .patch import apply_patch, apply_patches, is_json_patch
from .pointer import (
	add_by_path,
	assoc_path,
	escape_segment,
	get_by_path,
	parse_pointer,
	remove_by_path,
	set_by_path,
	unescape_segment,
)
from .renderer import SpecRenderer
from .scheduling import TaskRegistry
from .spec import (
	build_spec_from_parts,
	flat_to_tree,
	get_text_from_parts,
	nested_to_flat,
	parse_message_parts,
)
from .state import InMemoryStateStore, StateStore, create_state_store
from .stream import (
	MixedStreamParser,
	SpecStreamCompiler,
	StreamPushResult,
	apply_spec_patch,
	compile_spec_stream,
	create_routed_spec_compiler,
	create_spec_stream_compiler,
	parse_patch_line,
)
from .types import (
	SPEC_DATA_PART_TYPE,
	ActionBinding,
	Element,
	FlatElement,
	FormValidationResult,
	JsonPatch,
	RenderedElement,
	Spec,
	TokenUsage,
	ValidationCheck,
)
from .validation import FieldValidator, ValidationRegistry
from .visibility import is_visible
from .watch import WatchDispatcher, WatchEvent

__version__ = "0.1.0"
