from __future__ import annotations
import logging
import queue
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Serialises provider calls: one worker thread drains a FIFO queue and
    sleeps `delay_seconds` between calls while more work is waiting.

    `schedule` returns that caller's own result or re-raises that caller's
    own exception. Pacing only; nothing is retried.
    """

    def __init__(self, delay_seconds: float, name: str = "rate-limiter"):
        self.delay_seconds = float(delay_seconds)
        self.name = name
        self._queue: "queue.Queue[Tuple[Callable[[], Any], Future]]" = queue.Queue()
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(target=self._drain, name=self.name, daemon=True)
                self._worker.start()

    def _drain(self) -> None:
        while True:
            fn, fut = self._queue.get()
            try:
                if fut.set_running_or_notify_cancel():
                    try:
                        fut.set_result(fn())
                    except BaseException as e:
                        fut.set_exception(e)
            finally:
                self._queue.task_done()
            if not self._queue.empty():
                time.sleep(self.delay_seconds)

    def submit(self, fn: Callable[[], Any]) -> Future:
        fut: Future = Future()
        self._queue.put((fn, fut))
        self._ensure_worker()
        return fut

    def schedule(self, fn: Callable[[], Any], timeout: Optional[float] = None) -> Any:
        return self.submit(fn).result(timeout=timeout)

    @property
    def pending(self) -> int:
        return self._queue.qsize()
