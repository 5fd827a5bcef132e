"""StoreAccess — fixed timeout and a single retry around storage-client calls."""

import functools
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError

from skillmatch.exceptions import AssignmentUnavailable, StoreError
from skillmatch.log import get_logger
from skillmatch.store import SkillStore

logger = get_logger(__name__)

# Errors worth a second attempt. Anything else (bad input, domain errors)
# propagates on the first failure.
TRANSIENT_ERRORS = (StoreError, OSError, TimeoutError)

# Room for a timed-out call still holding its thread while the retry runs.
DEFAULT_CALL_THREADS = 4


class StoreAccess:
    """Wraps a SkillStore so every call has a deadline and at most one retry.

    After the retry fails the call surfaces as AssignmentUnavailable. Only
    individual store calls are retried, never a whole assignment.

    Calls run on one executor owned by this wrapper, created on first use.
    close() shuts it down; the wrapped store is left open.
    """

    def __init__(self, store: SkillStore, timeout: float = 5.0, backoff: float = 0.2,
                 retries: int = 1, max_threads: int = DEFAULT_CALL_THREADS):
        self.store = store
        self.timeout = timeout
        self.backoff = backoff
        self.retries = retries
        self.max_threads = max_threads
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_threads,
                                                    thread_name_prefix="skillmatch-store")
            return self._executor

    def close(self) -> None:
        """Shut down the call executor. A hung call is not waited for."""
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None

    def __getattr__(self, name: str):
        # Lets a StoreAccess stand in wherever a SkillStore is expected.
        attr = getattr(self.store, name)
        if not callable(attr):
            return attr
        return functools.partial(self.call, name)

    def call(self, operation: str, *args, **kwargs):
        """Invoke store.<operation>(*args, **kwargs) under the timeout/retry policy."""
        fn = getattr(self.store, operation)
        max_attempts = 1 + self.retries
        last_error: Exception | None = None

        for attempt in range(max_attempts):
            if attempt > 0:
                logger.warning("Retry %d/%d for store.%s after: %s",
                               attempt, self.retries, operation, last_error)
                time.sleep(self.backoff * attempt)
            try:
                return self._run_with_timeout(fn, args, kwargs)
            except TRANSIENT_ERRORS as e:
                last_error = e

        raise AssignmentUnavailable(operation, str(last_error) or type(last_error).__name__)

    def _run_with_timeout(self, fn, args, kwargs):
        # A hung call keeps its worker thread; the caller moves on after the timeout.
        future = self._get_executor().submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            future.cancel()
            raise TimeoutError(f"store call timed out after {self.timeout}s")
