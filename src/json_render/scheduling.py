import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from anyio import from_thread

T = TypeVar("T")

logger = logging.getLogger(__name__)


def create_task(
	coroutine: Awaitable[T],
	*,
	name: str | None = None,
	on_done: Callable[[asyncio.Task[T]], None] | None = None,
) -> asyncio.Task[T]:
	"""Schedule a coroutine on the running loop, or on the loop that owns the
	calling worker thread when called from outside it."""

	def _start() -> asyncio.Task[T]:
		task = asyncio.ensure_future(coroutine)
		if name is not None:
			task.set_name(name)
		if on_done:
			task.add_done_callback(on_done)
		return task

	try:
		asyncio.get_running_loop()
		return _start()
	except RuntimeError:
		pass

	async def _runner() -> asyncio.Task[T]:
		return _start()

	return from_thread.run(_runner)


def in_worker_thread() -> bool:
	"""True inside a thread started by `anyio.to_thread.run_sync`."""
	try:
		from_thread.check_cancelled()
	except RuntimeError:
		return False
	return True


def run_sync_or_async(result: Any) -> Any:
	"""Drive a handler result to completion when no loop is running.

	Coroutines returned outside an event loop run to completion on a fresh
	loop; anything else is returned unchanged.
	"""
	if not inspect.isawaitable(result):
		return result
	try:
		asyncio.get_running_loop()
	except RuntimeError:
		return asyncio.run(_await(result))
	raise RuntimeError("run_sync_or_async() cannot block inside a running loop")


async def _await(awaitable: Awaitable[T]) -> T:
	return await awaitable


class TaskRegistry:
	"""Keeps strong references to fire-and-forget tasks until they finish."""

	_tasks: set[asyncio.Task[Any]]
	name: str | None

	def __init__(self, name: str | None = None) -> None:
		self._tasks = set()
		self.name = name

	def create(
		self,
		coroutine: Awaitable[T],
		*,
		name: str | None = None,
		on_done: Callable[[asyncio.Task[T]], None] | None = None,
	) -> asyncio.Task[T]:
		# Done callbacks are attached on the owning loop, even from worker threads
		def _done(task: asyncio.Task[T]) -> None:
			self._tasks.discard(task)
			if on_done is not None:
				on_done(task)

		task = create_task(coroutine, name=name, on_done=_done)
		self._tasks.add(task)
		return task

	def pending(self) -> list[asyncio.Task[Any]]:
		return [task for task in self._tasks if not task.done()]

	async def wait(self) -> None:
		"""Wait for every tracked task, including tasks spawned while waiting."""
		while pending := self.pending():
			await asyncio.gather(*pending, return_exceptions=True)

	def cancel_all(self) -> None:
		for task in list(self._tasks):
			if not task.done():
				logger.debug("Cancelling task %s", task.get_name())
				task.cancel()
		self._tasks.clear()


__all__ = ["TaskRegistry", "create_task", "in_worker_thread", "run_sync_or_async"]
