"""Rate-limited FIFO queue for outbound composition-data requests."""

import logging
import threading
import time
from collections import deque
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Tuple

from ..errors import Cancelled

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_MINUTE = 60
DEFAULT_MAX_CONCURRENT = 5
DEFAULT_WINDOW_SECONDS = 60.0


@dataclass
class QueuedTask:
    fn: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    future: Future = field(default_factory=Future)


class RateLimiter:
    """Admits queued tasks in FIFO order under two caps.

    At most `max_concurrent` tasks run at once, and at most `requests_per_minute` tasks start within
    any trailing `window_seconds`. Queued tasks are only dropped by clear().
    """

    def __init__(
        self,
        requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
    ):
        if requests_per_minute < 1 or max_concurrent < 1 or window_seconds <= 0:
            raise ValueError("requests_per_minute and max_concurrent must be >= 1 and window_seconds > 0")

        self.requests_per_minute = requests_per_minute
        self.max_concurrent = max_concurrent
        self.window_seconds = window_seconds

        self._queue: Deque[QueuedTask] = deque()
        self._starts: Deque[float] = deque()  # Admission times inside the trailing window
        self._active = 0
        self._closed = False
        self._condition = threading.Condition()

        self._workers = ThreadPoolExecutor(max_workers=max_concurrent, thread_name_prefix="ingest")
        self._dispatcher = threading.Thread(target=self._dispatch_loop, name="ingest-dispatcher", daemon=True)
        self._dispatcher.start()

        logger.debug(
            f"RateLimiter started: {requests_per_minute} per {window_seconds:.1f}s, max_concurrent={max_concurrent}"
        )

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Future:
        """Queue a call; the returned Future resolves with its result or exception."""
        task = QueuedTask(fn=fn, args=args, kwargs=kwargs)
        with self._condition:
            if self._closed:
                raise RuntimeError("RateLimiter has been shut down")
            self._queue.append(task)
            self._condition.notify_all()
        return task.future

    def clear(self) -> int:
        """Fail every queued task with Cancelled; running tasks are unaffected. Returns the number dropped."""
        with self._condition:
            pending = list(self._queue)
            self._queue.clear()
            self._condition.notify_all()

        dropped = 0
        for task in pending:
            try:
                task.future.set_exception(Cancelled("Queue cleared"))
            except InvalidStateError:
                continue  # Cancelled by the caller first
            dropped += 1

        if dropped:
            logger.info(f"Cleared {dropped} queued requests")
        return dropped

    @property
    def queue_length(self) -> int:
        with self._condition:
            return len(self._queue)

    @property
    def active_requests(self) -> int:
        with self._condition:
            return self._active

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks. Tasks already queued still run; wait blocks until they have."""
        with self._condition:
            self._closed = True
            self._condition.notify_all()

        if wait:
            self._dispatcher.join()
        self._workers.shutdown(wait=wait)
        logger.debug("RateLimiter shut down")

    def __enter__(self) -> "RateLimiter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)

    def _dispatch_loop(self) -> None:
        while True:
            task = self._next_task()
            if task is None:
                return
            self._workers.submit(self._run, task)

    def _next_task(self):
        """Block until a task may start; None once shut down with an empty queue."""
        with self._condition:
            while True:
                if not self._queue:
                    if self._closed:
                        return None
                    self._condition.wait()
                    continue

                if self._active >= self.max_concurrent:
                    self._condition.wait()
                    continue

                now = time.monotonic()
                while self._starts and self._starts[0] <= now - self.window_seconds:
                    self._starts.popleft()

                if len(self._starts) >= self.requests_per_minute:
                    # Sleep until the oldest start leaves the window
                    self._condition.wait(timeout=max(0.001, self._starts[0] + self.window_seconds - now))
                    continue

                task = self._queue.popleft()
                if not task.future.set_running_or_notify_cancel():
                    continue  # Cancelled by the caller while queued

                self._starts.append(now)
                self._active += 1
                return task

    def _run(self, task: QueuedTask) -> None:
        result, error = None, None
        try:
            result = task.fn(*task.args, **task.kwargs)
        except BaseException as e:
            # The future resolves for any exception, SystemExit included
            logger.debug(f"Queued request failed: {e!r}")
            error = e
        finally:
            # Release the slot before resolving so callers never observe a finished task still counted
            with self._condition:
                self._active -= 1
                self._condition.notify_all()

        if error is not None:
            task.future.set_exception(error)
        else:
            task.future.set_result(result)
