"""
Dispatch of block work and observer callbacks.

Work runs inline by default. With a background worker, submissions run on a
single thread in submission order, so observers see events in the order
the pipeline produced them. In both modes a failing callback is logged and
counted; it never reaches the caller of ``submit``.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from ..utils import get_logger


class Dispatcher:
    """Runs callables inline or on one background worker thread."""

    def __init__(self, background: bool = False):
        self.background = background
        self.logger = get_logger('pipeline')
        self.failures = 0
        self._executor: Optional[ThreadPoolExecutor] = None
        if background:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix='preclassification'
            )

    @property
    def closed(self) -> bool:
        return self.background and self._executor is None

    def submit(self, fn: Callable, *args, **kwargs) -> Optional[Future]:
        """
        Run ``fn(*args, **kwargs)``.

        Returns:
            The future of the background task, or None when run inline
        """
        if not self.background:
            try:
                fn(*args, **kwargs)
            except Exception as e:
                self._record_failure(fn, e)
            return None
        if self._executor is None:
            raise RuntimeError("Dispatcher is closed")
        future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(lambda f: self._log_failure(fn, f))
        return future

    def flush(self):
        """Wait until everything submitted so far has run."""
        if self._executor is not None:
            self._executor.submit(lambda: None).result()

    def close(self):
        """Run the remaining work and stop the worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _log_failure(self, fn: Callable, future: Future):
        error = future.exception()
        if error is not None:
            self._record_failure(fn, error)

    def _record_failure(self, fn: Callable, error: BaseException):
        self.failures += 1
        name = getattr(fn, '__qualname__', repr(fn))
        self.logger.error(f"Callback {name} failed: {type(error).__name__}: {error}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
