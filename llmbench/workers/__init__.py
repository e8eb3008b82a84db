"""
Background workers for non-blocking operations.

Workers report to the UI thread through Qt signals; WorkerPool runs
independent calls concurrently for callers that block on the result.
"""

from llmbench.workers.base_worker import (
    BaseWorker,
    CancelledException,
    WorkerSignals,
    WorkerState,
    WorkerThread,
)
from llmbench.workers.thread_pool import (
    WorkerPool,
)

__all__ = [
    # Base
    'BaseWorker',
    'CancelledException',
    'WorkerSignals',
    'WorkerState',
    'WorkerThread',
    # Pool
    'WorkerPool',
]
