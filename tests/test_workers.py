from llmbench.services.generation import DispatchResult
from llmbench.services.settings import ProviderSlot
from llmbench.workers import WorkerPool, WorkerState
from llmbench.workers.generation_worker import GenerationWorker


class EchoBackend:
    def generate(self, slot, prompt):
        return f"{slot.provider}: {prompt}"


SLOT_A = ProviderSlot(provider="anthropic", api_key="sk-ant-x")
SLOT_B = ProviderSlot(provider="ollama", model="mistral")


def test_generation_worker_emits_result(qapp):
    worker = GenerationWorker("hello", SLOT_A, SLOT_B, EchoBackend())
    results, statuses = [], []
    worker.signals.finished.connect(results.append)
    worker.signals.status.connect(statuses.append)

    worker.run()

    assert worker.state is WorkerState.COMPLETED
    result, = results
    assert isinstance(result, DispatchResult)
    assert result.output_a.text == "anthropic: hello"
    assert result.output_b.text == "ollama: hello"
    assert statuses == ["Generating responses...", "Responses received"]


def test_generation_worker_reports_blank_prompt(qapp):
    worker = GenerationWorker(" ", SLOT_A, SLOT_B, EchoBackend())
    errors = []
    worker.signals.error.connect(lambda kind, message: errors.append((kind, message)))

    worker.run()

    assert worker.state is WorkerState.FAILED
    assert errors == [("GenerationError", "Prompt is required")]


def test_cancelled_worker_does_not_finish(qapp):
    worker = GenerationWorker("hello", SLOT_A, SLOT_B, EchoBackend())
    finished, cancelled = [], []
    worker.signals.finished.connect(finished.append)
    worker.signals.cancelled.connect(lambda: cancelled.append(True))

    worker.cancel()
    worker.run()

    assert finished == []
    assert cancelled == [True]
    assert worker.state is WorkerState.CANCELLED


def test_worker_pool_runs_callbacks(qapp):
    pool = WorkerPool(max_workers=2)
    results, errors = [], []

    pool.submit(lambda x: x * 2, 21, callback=results.append)
    pool.submit(lambda: 1 / 0, error_callback=errors.append)

    assert pool.wait_all(5000)
    assert results == [42]
    assert isinstance(errors[0], ZeroDivisionError)
    assert pool.pending_count == 0


def test_worker_pool_settles_when_a_callback_raises(qapp):
    pool = WorkerPool(max_workers=1)

    def explode(_value):
        raise RuntimeError("callback broke")

    pool.submit(lambda: "done", callback=explode)
    pool.submit(lambda: 1 / 0, error_callback=explode)

    assert pool.wait_all(5000)
    assert pool.pending_count == 0
