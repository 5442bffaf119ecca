# reporter.py
# Fire-and-forget delivery of positions and activities to the persistence API.
# Calls return immediately; a worker thread does the HTTP and swallows failures.

import logging
import queue
import threading
from typing import Callable, Optional

from ..navigation.models import PositionSample
from .persistence import PersistenceClient, PersistenceError

logger = logging.getLogger(__name__)


class ActivityReporter:
    """
    Background queue in front of a PersistenceClient.

    Failures are logged and dropped; nothing is retried and nothing is
    raised back to the caller.
    """

    def __init__(self, client: PersistenceClient, max_pending: int = 1000) -> None:
        self.client = client
        self._queue: "queue.Queue[Optional[Callable[[], object]]]" = queue.Queue(maxsize=max_pending)
        self._thread = threading.Thread(target=self._worker, name="activity-reporter", daemon=True)
        self._thread.start()

    def _worker(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    break
                job()
            except PersistenceError as e:
                logger.error(f"Report failed: {e}")
            except Exception as e:
                logger.exception(f"Unexpected reporting error: {e}")
            finally:
                self._queue.task_done()

    def _submit(self, job: Callable[[], object]) -> None:
        try:
            self._queue.put_nowait(job)
        except queue.Full:
            logger.warning("Report queue full, dropping report.")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def report_position(self, driver_id: int, sample: PositionSample) -> None:
        self._submit(lambda: self.client.update_position(driver_id, sample))

    def log_activity(self, driver_id: Optional[int], kind: str, message: str) -> None:
        self._submit(lambda: self.client.log_activity(driver_id, kind, message))

    def flush(self) -> None:
        """Block until every queued report has been attempted."""
        self._queue.join()

    def close(self, timeout: float = 5.0) -> None:
        self._queue.put(None)
        self._thread.join(timeout=timeout)
