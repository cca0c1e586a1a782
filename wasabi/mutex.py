"""A non-blocking spin lock that hands out guards over its contents."""

from __future__ import annotations

import inspect
import threading
from typing import Callable, Generic, Tuple, TypeVar

from .errors import WasabiError

T = TypeVar("T")
R = TypeVar("R")

_LOCK_ATTEMPTS = 10000


def _caller_location(skip: int) -> Tuple[str, int]:
    frame = inspect.currentframe()
    frame = frame.f_back if frame is not None else None
    for _ in range(skip):
        if frame is None:
            break
        frame = frame.f_back
    if frame is None:
        return ("<unknown>", 0)
    return (frame.f_code.co_filename, frame.f_lineno)


class MutexGuard(Generic[T]):
    """Exclusive access to a Mutex's data until released."""

    def __init__(self, mutex: "Mutex[T]", location: Tuple[str, int]) -> None:
        self._mutex = mutex
        self.location = location
        self._released = False

    def _check(self) -> None:
        if self._released:
            raise WasabiError("MutexGuard already released")

    @property
    def value(self) -> T:
        self._check()
        return self._mutex._data

    @value.setter
    def value(self, new_value: T) -> None:
        self._check()
        self._mutex._data = new_value

    def release(self) -> None:
        """Give the lock back; releasing twice does nothing."""
        if not self._released:
            self._released = True
            self._mutex._lock.release()

    def __enter__(self) -> "MutexGuard[T]":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def __repr__(self) -> str:
        file, line = self.location
        return f"MutexGuard {{ location: {file}:{line} }}"


class Mutex(Generic[T]):
    """Protects a value; locking fails instead of waiting indefinitely."""

    def __init__(self, data: T) -> None:
        self._data = data
        self._lock = threading.Lock()
        self._taker_line = 0
        self.created_at = _caller_location(1)

    def _try_lock_at(self, location: Tuple[str, int]) -> MutexGuard[T]:
        if not self._lock.acquire(blocking=False):
            raise WasabiError("Lock failed")
        self._taker_line = location[1]
        return MutexGuard(self, location)

    def try_lock(self) -> MutexGuard[T]:
        """Take the lock once or raise WasabiError if it is held."""
        return self._try_lock_at(_caller_location(1))

    def lock(self) -> MutexGuard[T]:
        """Spin a bounded number of times for the lock, then give up."""
        location = _caller_location(1)
        for _ in range(_LOCK_ATTEMPTS):
            try:
                return self._try_lock_at(location)
            except WasabiError:
                continue
        file, line = self.created_at
        raise WasabiError(
            f"Failed to lock Mutex at {file}:{line}, "
            f"caller: {location[0]}:{location[1]}, "
            f"taker_line_num: {self._taker_line}"
        )

    def under_locked(self, f: Callable[[T], R]) -> R:
        """Call ``f`` with the data while holding the lock."""
        with self.lock() as guard:
            return f(guard.value)

    def __repr__(self) -> str:
        file, line = self.created_at
        return f"Mutex @ {file}:{line}"