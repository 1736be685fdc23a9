"""Threaded queue - a pool of consumer threads drains a shared request queue."""

import queue
import threading
from collections import deque
from typing import Deque, List, Optional

from ..core import get_logger
from ..core.models import ProcessingRequest, ProcessingResult
from ..core.protocols import RequestQueue
from ..core.worker import DerivativeWorker
from .serial import DEFAULT_HISTORY_SIZE

_STOP = object()


class ThreadedRequestQueue(RequestQueue):
    """
    In-process message queue consumed by ``concurrency`` worker threads.

    Each request is taken by exactly one consumer and processed to
    completion; ordering between requests is not guaranteed. A failing
    request only marks its own asset FAILED. Only the most recent
    ``history_size`` results are kept.
    """

    def __init__(
        self,
        worker: DerivativeWorker,
        concurrency: int = 2,
        maxsize: int = 0,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        self._worker = worker
        self._concurrency = max(1, concurrency)
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._results: Deque[ProcessingResult] = deque(maxlen=max(1, history_size))
        self._logger = get_logger("queue")

    @property
    def results(self) -> List[ProcessingResult]:
        with self._lock:
            return list(self._results)

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        if self.running:
            return
        self._threads = [
            threading.Thread(
                target=self._consume, name=f"derivative-consumer-{i}", daemon=True
            )
            for i in range(self._concurrency)
        ]
        for thread in self._threads:
            thread.start()
        self._logger.info(f"[QUEUE] Started {self._concurrency} consumer thread(s)")

    def publish(self, request: ProcessingRequest) -> None:
        self._queue.put(request)
        self._logger.debug(
            f"[QUEUE] Request published - event_id={request.event_id}, "
            f"pending={self._queue.qsize()}"
        )

    def join(self) -> None:
        self._queue.join()

    def stop(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop consumers after the requests already queued have been handled."""
        for _ in self._threads:
            self._queue.put(_STOP)
        if wait:
            for thread in self._threads:
                thread.join(timeout)
            self._threads = []
        self._logger.info("[QUEUE] Consumers stopped")

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                result = self._worker.handle(item)
                with self._lock:
                    self._results.append(result)
            except Exception as exc:
                self._logger.error(f"[QUEUE] Consumer error: {exc}", exc_info=True)
            finally:
                self._queue.task_done()
