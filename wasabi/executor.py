"""Cooperative executor that polls coroutines until they complete."""

from __future__ import annotations

import inspect
from collections import deque
from datetime import timedelta
from pathlib import Path
from typing import Any, Coroutine, Deque, Optional, Tuple, Union

from .errors import WasabiError
from .hpet import global_timestamp
from .mutex import Mutex
from .printing import info


def _caller_location(depth: int) -> Tuple[str, int]:
    frame = inspect.currentframe()
    for _ in range(depth + 1):
        if frame is None:
            break
        frame = frame.f_back
    if frame is None:
        return ("<unknown>", 0)
    return (Path(frame.f_code.co_filename).name, frame.f_lineno)


class _Suspend:
    def __await__(self):
        yield


class Task:
    """A coroutine together with the place it was created."""

    def __init__(self, coro: Coroutine[Any, Any, Any], location: Optional[Tuple[str, int]] = None) -> None:
        self._coro = coro
        self.location = location if location is not None else _caller_location(1)
        self._done = False
        self._value: Any = None
        self._error: Optional[Exception] = None

    @property
    def done(self) -> bool:
        return self._done

    def poll(self) -> bool:
        """Run the coroutine to its next suspension; True once it has finished."""
        if self._done:
            return True
        try:
            self._coro.send(None)
        except StopIteration as stop:
            self._value = stop.value
            self._done = True
        except Exception as exc:
            self._error = exc
            self._done = True
        return self._done

    def result(self) -> Any:
        """The coroutine's return value; re-raises what it raised."""
        if not self._done:
            raise WasabiError("Task has not completed")
        if self._error is not None:
            raise self._error
        return self._value

    def _describe_outcome(self) -> str:
        if self._error is not None:
            return f"Err({self._error})"
        return f"Ok({self._value!r})"

    def __repr__(self) -> str:
        file, line = self.location
        return f"Task({file}:{line})"


def block_on(coro: Coroutine[Any, Any, Any]) -> Any:
    """Poll ``coro`` until it finishes and return its result."""
    task = Task(coro, _caller_location(1))
    while not task.poll():
        pass
    return task.result()


async def yield_execution() -> None:
    """Give other tasks one turn."""
    await _Suspend()


async def sleep(duration: Union[timedelta, float]) -> None:
    """Suspend until the global timestamp has passed ``duration`` from now."""
    if not isinstance(duration, timedelta):
        duration = timedelta(seconds=duration)
    deadline = global_timestamp() + duration
    while not deadline < global_timestamp():
        await _Suspend()


class Executor:
    """Round-robin queue of tasks."""

    def __init__(self) -> None:
        self._queue: Deque[Task] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def _enqueue(self, task: Task) -> Task:
        self._queue.append(task)
        return task

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> Task:
        return self._enqueue(Task(coro, _caller_location(1)))

    def run(self) -> None:
        """Poll queued tasks in turn until none remains."""
        info("Executor starts running...")
        while self._queue:
            task = self._queue.popleft()
            if task.poll():
                info(f"Task completed: {task!r}: {task._describe_outcome()}")
            else:
                self._queue.append(task)


_GLOBAL_EXECUTOR: Mutex[Optional[Executor]] = Mutex(None)


def _global_executor() -> Executor:
    with _GLOBAL_EXECUTOR.lock() as guard:
        if guard.value is None:
            guard.value = Executor()
        return guard.value


def spawn_global(coro: Coroutine[Any, Any, Any]) -> Task:
    """Queue ``coro`` on the global executor."""
    location = _caller_location(1)
    return _global_executor()._enqueue(Task(coro, location))


def start_global_executor() -> None:
    info("Starting global executor loop")
    _global_executor().run()