import asyncio
import threading

import pytest
from anyio import to_thread
from json_render.scheduling import (
	TaskRegistry,
	create_task,
	in_worker_thread,
	run_sync_or_async,
)


async def _value(value: int) -> int:
	await asyncio.sleep(0)
	return value


def test_run_sync_or_async_outside_loop():
	assert run_sync_or_async(3) == 3
	assert run_sync_or_async(_value(4)) == 4


@pytest.mark.asyncio
async def test_run_sync_or_async_refuses_to_block_a_running_loop():
	coroutine = _value(1)
	with pytest.raises(RuntimeError):
		run_sync_or_async(coroutine)
	coroutine.close()


@pytest.mark.asyncio
async def test_create_task_names_and_callbacks():
	done: list[int] = []
	task = create_task(_value(5), name="answer", on_done=lambda t: done.append(t.result()))
	assert task.get_name() == "answer"
	assert await task == 5
	await asyncio.sleep(0)
	assert done == [5]


@pytest.mark.asyncio
async def test_registry_waits_for_tasks_spawned_while_waiting():
	registry = TaskRegistry("test")
	results: list[str] = []

	async def child() -> None:
		await asyncio.sleep(0)
		results.append("child")

	async def parent() -> None:
		await asyncio.sleep(0)
		registry.create(child())
		results.append("parent")

	registry.create(parent())
	await registry.wait()
	assert results == ["parent", "child"]
	assert registry.pending() == []


@pytest.mark.asyncio
async def test_registry_cancel_all():
	registry = TaskRegistry()
	task = registry.create(asyncio.sleep(10))
	registry.cancel_all()
	with pytest.raises(asyncio.CancelledError):
		await task
	assert registry.pending() == []


@pytest.mark.asyncio
async def test_worker_thread_detection():
	assert in_worker_thread() is False
	assert await to_thread.run_sync(in_worker_thread) is True


@pytest.mark.asyncio
async def test_create_task_from_worker_thread_lands_on_owner_loop():
	loop_thread = threading.get_ident()
	ran_on: list[int] = []

	async def record() -> str:
		ran_on.append(threading.get_ident())
		return "done"

	registry = TaskRegistry("worker")
	task = await to_thread.run_sync(lambda: registry.create(record(), name="from-thread"))
	assert task.get_name() == "from-thread"
	await registry.wait()
	assert task.result() == "done"
	assert ran_on == [loop_thread]
	assert registry.pending() == []
