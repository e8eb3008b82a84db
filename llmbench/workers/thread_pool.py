"""
Small private thread pool for running independent calls side by side.

Used by the generation fan-out so that panel A and panel B are requested
concurrently while the caller blocks until both have settled.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, TypeVar

from PyQt6.QtCore import QObject, QThreadPool, QRunnable, QMutex, QMutexLocker


T = TypeVar('T')


class WorkerPool(QObject):
    """
    A dedicated QThreadPool with per-task callbacks.

    The pool is private to its owner, so wait_all() never waits on
    unrelated work queued on the global Qt pool. Callbacks run on the
    pool thread that executed the task.

    Usage:
        pool = WorkerPool(max_workers=2)
        pool.submit(generate, slot_a, callback=store_a)
        pool.submit(generate, slot_b, callback=store_b)
        pool.wait_all()
    """

    def __init__(self, max_workers: Optional[int] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._pool = QThreadPool(self)
        if max_workers is not None:
            self._pool.setMaxThreadCount(max_workers)
        self._mutex = QMutex()
        self._pending = 0
        self._submitted = 0

    @property
    def pending_count(self) -> int:
        with QMutexLocker(self._mutex):
            return self._pending

    def submit(
        self,
        func: Callable[..., T],
        *args,
        callback: Optional[Callable[[T], None]] = None,
        error_callback: Optional[Callable[[Exception], None]] = None,
        **kwargs
    ) -> str:
        """
        Queue func(*args, **kwargs) on the pool.

        Args:
            func: Callable to run
            *args: Positional arguments for func
            callback: Receives the return value on success
            error_callback: Receives the exception on failure
            **kwargs: Keyword arguments for func

        Returns:
            Identifier of the queued task
        """
        with QMutexLocker(self._mutex):
            self._submitted += 1
            self._pending += 1
            task_id = f"task-{self._submitted}"

        self._pool.start(_Task(self, task_id, lambda: func(*args, **kwargs), callback, error_callback))
        return task_id

    def wait_all(self, timeout: int = -1) -> bool:
        """
        Block until every submitted task has finished.

        Args:
            timeout: Milliseconds to wait, -1 for no limit

        Returns:
            False if the timeout expired first
        """
        return self._pool.waitForDone(timeout)

    def _settle(self, task_id: str, error: Optional[Exception] = None) -> None:
        with QMutexLocker(self._mutex):
            self._pending -= 1
        if error is not None:
            logging.debug(f"WorkerPool - {task_id} raised {type(error).__name__}: {error}")


class _Task(QRunnable):

    def __init__(
        self,
        pool: WorkerPool,
        task_id: str,
        call: Callable[[], Any],
        callback: Optional[Callable[[Any], None]],
        error_callback: Optional[Callable[[Exception], None]]
    ):
        super().__init__()
        self.pool = pool
        self.task_id = task_id
        self.call = call
        self.callback = callback
        self.error_callback = error_callback
        self.setAutoDelete(True)

    def run(self) -> None:
        error: Optional[Exception] = None
        try:
            try:
                result = self.call()
            except Exception as e:
                error = e
                if self.error_callback:
                    self.error_callback(e)
            else:
                if self.callback:
                    self.callback(result)
        except Exception as e:
            logging.error(f"WorkerPool - Callback for {self.task_id} failed: {type(e).__name__}: {e}")
        finally:
            self.pool._settle(self.task_id, error)
