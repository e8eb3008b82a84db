"""
Worker for dispatching a prompt to both panels off the UI thread.
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import QObject

from llmbench.services.generation import DispatchResult, GenerationBackend, fan_out_generate
from llmbench.services.settings import ProviderSlot
from llmbench.workers.base_worker import BaseWorker


class GenerationWorker(BaseWorker):
    """
    Runs fan_out_generate in a background thread.

    The finished signal carries the DispatchResult; a blank prompt or
    two misconfigured slots surface through the error signal.
    """

    def __init__(
        self,
        prompt: str,
        slot_a: ProviderSlot,
        slot_b: ProviderSlot,
        backend: Optional[GenerationBackend] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)
        self.prompt = prompt
        self.slot_a = slot_a
        self.slot_b = slot_b
        self.backend = backend

    def do_work(self) -> DispatchResult:
        self.report_status("Generating responses...")
        result = fan_out_generate(self.prompt, self.slot_a, self.slot_b, self.backend)
        self.check_cancelled()
        self.report_status("Responses received")
        return result
