"""
Qt worker objects for running blocking calls off the UI thread.

A worker wraps one unit of work (a provider round trip, an export) and
reports back through WorkerSignals, which Qt delivers on the thread that
owns the receiving widget.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Any, Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot, QMutex, QMutexLocker


class WorkerState(Enum):
    """Lifecycle of a worker."""
    PENDING = auto()
    RUNNING = auto()
    CANCELLING = auto()
    CANCELLED = auto()
    COMPLETED = auto()
    FAILED = auto()


class WorkerSignals(QObject):
    """Signals emitted by a BaseWorker."""

    started = pyqtSignal()
    status = pyqtSignal(str)
    finished = pyqtSignal(object)    # result of do_work
    error = pyqtSignal(str, str)     # (exception type name, message)
    cancelled = pyqtSignal()


class CancelledException(Exception):
    """Raised inside do_work once cancellation has been requested."""


class _QObjectABCMeta(type(QObject), type(ABC)):
    pass


class BaseWorker(QObject, ABC, metaclass=_QObjectABCMeta):
    """
    One cancellable unit of background work.

    Subclasses implement do_work(); run() maps its outcome onto exactly
    one of the finished, error or cancelled signals.

    Usage:
        worker = GenerationWorker(prompt, slot_a, slot_b)
        worker.signals.finished.connect(on_result)
        thread = WorkerThread(worker)
        thread.start()
    """

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.signals = WorkerSignals()
        self._mutex = QMutex()
        self._state = WorkerState.PENDING
        self._cancel_requested = False

    @property
    def state(self) -> WorkerState:
        with QMutexLocker(self._mutex):
            return self._state

    def _set_state(self, state: WorkerState) -> None:
        with QMutexLocker(self._mutex):
            self._state = state

    @property
    def is_cancelled(self) -> bool:
        with QMutexLocker(self._mutex):
            return self._cancel_requested

    def cancel(self) -> None:
        """Ask the worker to stop at its next cancellation check."""
        with QMutexLocker(self._mutex):
            self._cancel_requested = True
            if self._state is WorkerState.RUNNING:
                self._state = WorkerState.CANCELLING

    @pyqtSlot()
    def run(self) -> None:
        """Execute do_work() and emit the matching outcome signal."""
        name = type(self).__name__
        self._set_state(WorkerState.RUNNING)
        self.signals.started.emit()

        try:
            result = self.do_work()
            self.check_cancelled()
        except CancelledException:
            logging.debug(f"{name} - Cancelled")
            self._set_state(WorkerState.CANCELLED)
            self.signals.cancelled.emit()
            return
        except Exception as e:
            logging.error(f"{name} - Failed: {type(e).__name__}: {e}")
            self._set_state(WorkerState.FAILED)
            self.signals.error.emit(type(e).__name__, str(e))
            return

        self._set_state(WorkerState.COMPLETED)
        self.signals.finished.emit(result)

    @abstractmethod
    def do_work(self) -> Any:
        """
        Perform the work and return its result.

        Long-running implementations call check_cancelled() between
        steps.
        """

    def report_status(self, message: str) -> None:
        self.signals.status.emit(message)

    def check_cancelled(self) -> None:
        """Raise CancelledException if cancel() has been called."""
        if self.is_cancelled:
            raise CancelledException("Operation cancelled")


class WorkerThread(QThread):
    """
    QThread that owns a single worker and quits when it settles.

    Usage:
        thread = WorkerThread(worker)
        thread.finished.connect(cleanup)
        thread.start()
    """

    def __init__(self, worker: BaseWorker, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.worker = worker
        self.worker.moveToThread(self)

        self.started.connect(self.worker.run)
        for signal in (worker.signals.finished, worker.signals.error, worker.signals.cancelled):
            signal.connect(self.quit)

    def cancel(self) -> None:
        self.worker.cancel()
