"""Bounded, thread-safe pool of expensive client objects.

    The pool only does accounting: creating a handle, destroying it and checking
    if it is healthy are delegated to the factory, destroy and validate callables
    given to the constructor, so the same pool serves any client type.

    Callers borrow with acquire() and must hand the handle back with exactly one of
    release() (healthy, may be reused) or invalidate() (implicated in a failure,
    destroyed and never reused). borrowed() wraps that discipline in a context manager.
"""
import contextlib
import threading
import time
import typing as t

import zrlog

from rbstore.exc import RBStoreError
from rbstore.util import HaltFlag

# Longest time a blocked acquire() sleeps before checking its halt flag again
_WAIT_SLICE = 0.25


class PoolExhausted(RBStoreError):
    """No handle became available within the allowed time."""

    def __init__(self, msg: str, code_number: int = 1000, is_recoverable: bool = True):
        super().__init__(msg, "POOL", code_number, is_recoverable=is_recoverable)


class PoolClosed(PoolExhausted):
    """The pool was closed while (or before) waiting for a handle."""

    def __init__(self, msg: str):
        super().__init__(msg, 1001, False)


class ConnectFailed(RBStoreError):
    """The factory could not create a new handle."""

    def __init__(self, msg: str):
        super().__init__(msg, "POOL", 1002, is_recoverable=True)


class ClientPool:

    def __init__(self,
                 factory: t.Callable[[], t.Any],
                 destroy: t.Callable[[t.Any], t.Any],
                 validate: t.Optional[t.Callable[[t.Any], bool]] = None,
                 max_size: int = 8,
                 wait_timeout: t.Optional[float] = None,
                 name: str = "client"):
        if max_size < 1:
            raise ValueError(f"Pool size must be at least 1, got [{max_size}]")
        self._factory = factory
        self._destroy = destroy
        self._validate = validate or (lambda handle: True)
        self._max_size = max_size
        self._wait_timeout = wait_timeout
        self._name = name
        self._cond = threading.Condition()
        self._idle: list = []
        self._borrowed: dict[int, t.Any] = {}
        self._creating = 0
        self._closed = False
        self._log = zrlog.get_logger("rbstore.pool")

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def idle_count(self) -> int:
        with self._cond:
            return len(self._idle)

    @property
    def borrowed_count(self) -> int:
        with self._cond:
            return len(self._borrowed)

    @property
    def live_count(self) -> int:
        with self._cond:
            return self._live()

    def _live(self) -> int:
        return len(self._idle) + len(self._borrowed) + self._creating

    def acquire(self, halt_flag: HaltFlag = None, timeout: t.Optional[float] = None):
        """Borrow a handle, creating one if the pool is below its maximum size.

            Blocks until a handle is free. Raises PoolExhausted when the timeout
            (or the pool's default wait timeout) expires, PoolClosed when the pool
            is or becomes closed and HaltInterrupt when the halt flag trips.
        """
        if timeout is None:
            timeout = self._wait_timeout
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            handle, create = self._reserve(halt_flag, deadline)
            if create:
                return self._create()
            if self._is_healthy(handle):
                return handle
            self._log.debug(f"Idle {self._name} handle failed validation, discarding it")
            self.invalidate(handle)

    def _reserve(self, halt_flag: t.Optional[HaltFlag], deadline: t.Optional[float]) -> tuple[t.Any, bool]:
        with self._cond:
            while True:
                if self._closed:
                    raise PoolClosed(f"The {self._name} pool is closed")
                if self._idle:
                    handle = self._idle.pop()
                    self._borrowed[id(handle)] = handle
                    return handle, False
                if self._live() < self._max_size:
                    self._creating += 1
                    return None, True
                if halt_flag is not None:
                    halt_flag.check_continue(True)
                wait_time = _WAIT_SLICE
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise PoolExhausted(f"Timed out waiting for a {self._name} handle, all [{self._max_size}] in use")
                    wait_time = min(wait_time, remaining)
                self._cond.wait(wait_time)

    def _create(self):
        try:
            handle = self._factory()
        except Exception as ex:
            with self._cond:
                self._creating -= 1
                self._cond.notify()
            raise ConnectFailed(f"Could not create {self._name} handle: {ex.__class__.__name__}: {str(ex)}") from ex
        with self._cond:
            self._creating -= 1
            closed = self._closed
            if not closed:
                self._borrowed[id(handle)] = handle
            else:
                self._cond.notify_all()
        if closed:
            self._safe_destroy(handle)
            raise PoolClosed(f"The {self._name} pool closed while a handle was being created")
        self._log.debug(f"Created new {self._name} handle")
        return handle

    def _is_healthy(self, handle) -> bool:
        try:
            return bool(self._validate(handle))
        except Exception:
            self._log.exception(f"Exception while validating {self._name} handle")
            return False

    def release(self, handle):
        """Return a healthy handle so that it can be borrowed again."""
        with self._cond:
            self._take_back(handle)
            if not self._closed:
                self._idle.append(handle)
                self._cond.notify()
                return
        self._safe_destroy(handle)

    def invalidate(self, handle):
        """Destroy a borrowed handle and free its slot for a replacement."""
        with self._cond:
            self._take_back(handle)
            self._cond.notify()
        self._safe_destroy(handle)

    def _take_back(self, handle):
        if self._borrowed.pop(id(handle), None) is None:
            raise ValueError(f"Handle was not borrowed from the {self._name} pool")

    def close(self):
        """Destroy idle handles and refuse further borrowing.

            Handles borrowed at this point are destroyed when they come back.
        """
        with self._cond:
            self._closed = True
            idle, self._idle = self._idle, []
            self._cond.notify_all()
        for handle in idle:
            self._safe_destroy(handle)

    def _safe_destroy(self, handle):
        try:
            self._destroy(handle)
            self._log.debug(f"Destroyed {self._name} handle")
        except Exception:
            self._log.exception(f"Exception while destroying {self._name} handle")

    @contextlib.contextmanager
    def borrowed(self, halt_flag: HaltFlag = None, timeout: t.Optional[float] = None, keep_on: tuple = ()):
        """Borrow a handle for the duration of a with block.

            The handle is released when the block completes or raises one of the
            exception types in keep_on, and invalidated on any other exception.
        """
        try:
            handle = self.acquire(halt_flag, timeout)
        except RBStoreError as ex:
            self._log.error(f"can't get {self._name} connection from pool: {str(ex)}")
            raise ex
        try:
            yield handle
        except keep_on:
            self.release(handle)
            raise
        except BaseException:
            self.invalidate(handle)
            raise
        else:
            self.release(handle)