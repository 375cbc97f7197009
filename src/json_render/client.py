"""
Streaming clients for generation endpoints.

`UIStream` POSTs a prompt and compiles the JSONL patch response into a Spec.
`ChatUI` keeps a conversation whose assistant turns mix prose lines with
patch lines. Both run each request as a task: a new `send` (or `abort`)
cancels the request in flight, and a cancelled or superseded request never
invokes callbacks.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from json_render.env import env
from json_render.errors import (
	Errors,
	StreamHTTPError,
	TestOperationFailed,
	errors as default_errors,
)
from json_render.stream import (
	MixedStreamParser,
	UsageLine,
	apply_spec_patch,
	empty_spec,
	parse_stream_line,
)
from json_render.types import JsonPatch, Spec, TokenUsage

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response) -> str:
	"""Prefer the `message` or `error` field of a JSON error body."""
	try:
		data = response.json()
	except ValueError:
		data = None
	if isinstance(data, dict):
		if data.get("message"):
			return str(data["message"])
		if data.get("error"):
			return str(data["error"])
	return f"HTTP error: {response.status_code}"


class _StreamingRequest:
	api: str
	is_streaming: bool
	error: Exception | None

	def __init__(
		self,
		api: str | None,
		*,
		client: httpx.AsyncClient | None,
		timeout: float | None,
		headers: Mapping[str, str] | None,
		errors: Errors | None,
	) -> None:
		resolved = api or env.api
		if not resolved:
			raise ValueError("An API endpoint is required (pass api= or set JSON_RENDER_API)")
		self.api = resolved
		self.is_streaming = False
		self.error = None
		self._client = client
		self._timeout = timeout if timeout is not None else env.timeout
		self._headers = dict(headers or {})
		self._errors = errors or default_errors
		self._task: asyncio.Task[Any] | None = None
		self._generation = 0

	@asynccontextmanager
	async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
		if self._client is not None:
			yield self._client
			return
		async with httpx.AsyncClient(timeout=self._timeout) as client:
			yield client

	async def _iter_text(self, body: dict[str, Any]) -> AsyncIterator[str]:
		async with self._client_context() as client:
			async with client.stream(
				"POST", self.api, json=body, headers=self._headers
			) as response:
				if response.is_error:
					await response.aread()
					raise StreamHTTPError(error_message(response), response.status_code)
				async for chunk in response.aiter_text():
					yield chunk

	def _is_current(self, generation: int) -> bool:
		return generation == self._generation

	async def _run_latest(self, factory: Callable[[int], Any]) -> Any:
		"""Cancel the request in flight and run a new one as a task.

		Returns None when the new request is itself aborted or superseded.
		"""
		self.abort()
		self._generation += 1
		task = asyncio.ensure_future(factory(self._generation))
		self._task = task
		try:
			return await task
		except asyncio.CancelledError:
			current = asyncio.current_task()
			if task.cancelled() and (current is None or current.cancelling() == 0):
				return None
			raise

	def abort(self) -> None:
		"""Cancel the request in flight. Its callbacks never run."""
		self._generation += 1
		if self._task is not None and not self._task.done():
			logger.debug("Aborting stream request to %s", self.api)
			self._task.cancel()
		self._task = None
		self.is_streaming = False

	def _apply(self, spec: Spec, patch: JsonPatch) -> bool:
		try:
			apply_spec_patch(spec, patch)
		except TestOperationFailed as exc:
			self._errors.warn(str(exc), code="stream.test", details={"path": exc.path})
			return False
		return True


class UIStream(_StreamingRequest):
	spec: Spec | None
	usage: TokenUsage | None
	raw_lines: list[str]

	def __init__(
		self,
		api: str | None = None,
		*,
		on_complete: Callable[[Spec], None] | None = None,
		on_error: Callable[[Exception], None] | None = None,
		on_update: Callable[[Spec], None] | None = None,
		client: httpx.AsyncClient | None = None,
		timeout: float | None = None,
		headers: Mapping[str, str] | None = None,
		errors: Errors | None = None,
	) -> None:
		super().__init__(api, client=client, timeout=timeout, headers=headers, errors=errors)
		self.on_complete = on_complete
		self.on_error = on_error
		self.on_update = on_update
		self.spec = None
		self.usage = None
		self.raw_lines = []

	def clear(self) -> None:
		self.spec = None
		self.error = None
		self.usage = None
		self.raw_lines = []

	async def send(
		self, prompt: str, context: Mapping[str, Any] | None = None
	) -> Spec | None:
		"""Stream a generation. Returns the final spec, or None on error or abort.

		`context["previousSpec"]` seeds the spec when it has a root, so the
		generator can patch an existing UI.
		"""
		return await self._run_latest(lambda generation: self._send(prompt, context, generation))

	async def _send(
		self, prompt: str, context: Mapping[str, Any] | None, generation: int
	) -> Spec | None:
		self.is_streaming = True
		self.error = None
		self.usage = None
		self.raw_lines = []

		previous = (context or {}).get("previousSpec")
		current: Spec = (
			copy.deepcopy(previous)
			if isinstance(previous, dict) and previous.get("root")
			else empty_spec()
		)
		self.spec = copy.deepcopy(current)
		body = {
			"prompt": prompt,
			"context": dict(context) if context is not None else None,
			"currentSpec": copy.deepcopy(current),
		}

		try:
			buffer = ""
			async for chunk in self._iter_text(body):
				buffer += chunk
				*lines, buffer = buffer.split("\n")
				for line in lines:
					self._process_line(line, current)
			if buffer.strip():
				self._process_line(buffer, current)
		except Exception as exc:
			if not self._is_current(generation):
				return None
			self.error = exc
			self._errors.report(exc, code="transport", details={"api": self.api})
			if self.on_error is not None:
				self.on_error(exc)
			return None
		finally:
			if self._is_current(generation):
				self.is_streaming = False

		if self.on_complete is not None and self._is_current(generation):
			self.on_complete(current)
		return current

	def _process_line(self, line: str, current: Spec) -> None:
		parsed = parse_stream_line(line)
		if parsed is None:
			return
		if isinstance(parsed, UsageLine):
			self.usage = parsed.usage
			return
		self.raw_lines.append(line.strip())
		if not self._apply(current, parsed.patch):
			return
		self.spec = copy.deepcopy(current)
		if self.on_update is not None:
			self.on_update(self.spec)


@dataclass(slots=True)
class ChatMessage:
	id: str
	role: Literal["user", "assistant"]
	text: str
	spec: Spec | None = None


def new_message_id() -> str:
	return str(uuid.uuid4())


class ChatUI(_StreamingRequest):
	"""Multi-turn chat where each assistant turn may carry text and a spec.

	The endpoint receives `{"messages": [{"role", "content"}, ...]}` and
	streams prose lines mixed with JSONL patch lines.
	"""

	messages: list[ChatMessage]

	def __init__(
		self,
		api: str | None = None,
		*,
		on_complete: Callable[[ChatMessage], None] | None = None,
		on_error: Callable[[Exception], None] | None = None,
		client: httpx.AsyncClient | None = None,
		timeout: float | None = None,
		headers: Mapping[str, str] | None = None,
		errors: Errors | None = None,
	) -> None:
		super().__init__(api, client=client, timeout=timeout, headers=headers, errors=errors)
		self.on_complete = on_complete
		self.on_error = on_error
		self.messages = []
		self.usage: TokenUsage | None = None

	def clear(self) -> None:
		self.messages = []
		self.error = None

	async def send(self, text: str) -> ChatMessage | None:
		if not text.strip():
			return None
		return await self._run_latest(lambda generation: self._send(text.strip(), generation))

	async def _send(self, text: str, generation: int) -> ChatMessage | None:
		user = ChatMessage(new_message_id(), "user", text)
		assistant = ChatMessage(new_message_id(), "assistant", "")
		self.messages = [*self.messages, user, assistant]
		self.is_streaming = True
		self.error = None

		history = [
			{"role": message.role, "content": message.text}
			for message in self.messages
			if message.id != assistant.id
		]
		current = empty_spec()
		has_spec = False

		def on_patch(patch: JsonPatch) -> None:
			nonlocal has_spec
			has_spec = True
			if self._apply(current, patch):
				assistant.spec = copy.deepcopy(current)

		def on_text(line: str) -> None:
			assistant.text = f"{assistant.text}\n{line}" if assistant.text else line

		def on_usage(usage: TokenUsage) -> None:
			self.usage = usage

		parser = MixedStreamParser(on_patch, on_text, on_usage)
		try:
			async for chunk in self._iter_text({"messages": history}):
				parser.push(chunk)
			parser.flush()
		except Exception as exc:
			if not self._is_current(generation):
				return None
			self.error = exc
			self._errors.report(exc, code="transport", details={"api": self.api})
			# Drop the placeholder when nothing arrived
			self.messages = [
				message
				for message in self.messages
				if message.id != assistant.id or message.text
			]
			if self.on_error is not None:
				self.on_error(exc)
			return None
		finally:
			if self._is_current(generation):
				self.is_streaming = False

		final = ChatMessage(
			assistant.id,
			"assistant",
			assistant.text,
			copy.deepcopy(current) if has_spec else None,
		)
		if self.on_complete is not None and self._is_current(generation):
			self.on_complete(final)
		return final


__all__ = [
	"ChatMessage",
	"ChatUI",
	"UIStream",
	"error_message",
	"new_message_id",
]
