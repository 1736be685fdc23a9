"""Inline queue - handles each request on the publishing thread."""

from collections import deque
from typing import Deque, List

from ..core.models import ProcessingRequest, ProcessingResult
from ..core.protocols import RequestQueue
from ..core.worker import DerivativeWorker

DEFAULT_HISTORY_SIZE = 100


class InlineRequestQueue(RequestQueue):
    """
    Processes every request as soon as it is published.

    Useful for tests and single-process deployments where callers still
    want the async contract (ticket first, status on the asset record)
    without running consumer threads. Failures are recorded on the asset
    and never raised back to the publisher. Only the most recent
    ``history_size`` results are kept; the asset record is the durable
    outcome.
    """

    def __init__(self, worker: DerivativeWorker, history_size: int = DEFAULT_HISTORY_SIZE):
        self._worker = worker
        self._results: Deque[ProcessingResult] = deque(maxlen=max(1, history_size))

    @property
    def results(self) -> List[ProcessingResult]:
        return list(self._results)

    def publish(self, request: ProcessingRequest) -> None:
        self._results.append(self._worker.handle(request))
