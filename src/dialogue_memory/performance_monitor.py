"""Request-scoped timing and aggregate statistics.

A PerformanceMonitor is an explicitly constructed object with an
``init()`` / ``shutdown()`` lifecycle, owned by the application's
composition root. Finished requests are kept in a bounded ring buffer,
oldest evicted first.

Each RequestMetrics record moves STARTED -> ENDED exactly once. Ending a
record twice, or computing a negative duration, raises
ContractViolationError.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from loguru import logger

from .config import MonitorConfig
from .errors import ContractViolationError
from .models import RequestMetrics, RequestStatus
from .token_counter import TokenEstimator, estimate_tokens


def new_request_id() -> str:
    """``req-<epoch ms>-<random hex>``; unique for the life of the process."""
    return f"req-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"


class PerformanceMonitor:
    """Tracks request durations, token estimates and error rates.

    Attributes:
        config: Monitor configuration (buffer size, slow request threshold)
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        estimator: TokenEstimator | None = None,
    ):
        """Create a monitor. Call :meth:`init` before use.

        Args:
            config: Monitor configuration
            clock: Monotonic clock returning seconds
            estimator: Token estimator for textual responses
        """
        self.config = config or MonitorConfig()
        self._clock = clock
        self._estimator = estimator or estimate_tokens
        self._metrics: deque[RequestMetrics] = deque(
            maxlen=self.config.max_metrics_entries
        )
        self._lock = threading.Lock()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def init(self) -> None:
        """Start the monitor with an empty buffer."""
        with self._lock:
            self._metrics.clear()
            self._running = True
        logger.info(
            f"PerformanceMonitor started "
            f"(max_metrics_entries={self.config.max_metrics_entries})"
        )

    def shutdown(self) -> dict[str, float]:
        """Stop the monitor, log final statistics and clear the buffer.

        Returns:
            Final statistics: ``requests``, ``average_duration_ms``,
            ``error_rate``
        """
        self._require_running()
        stats = {
            "requests": float(len(self._metrics)),
            "average_duration_ms": self.get_average_duration(),
            "error_rate": self.get_error_rate(),
        }
        with self._lock:
            self._metrics.clear()
            self._running = False
        logger.info(f"PerformanceMonitor stopped: {stats}")
        return stats

    def _require_running(self) -> None:
        if not self._running:
            raise ContractViolationError(
                "PerformanceMonitor is not running; call init() first"
            )

    def start_request(self, session_id: str) -> RequestMetrics:
        """Begin timing a request.

        Args:
            session_id: Session identifier

        Returns:
            A STARTED metrics record to pass to :meth:`end_request`
        """
        self._require_running()
        return RequestMetrics(
            request_id=new_request_id(),
            session_id=session_id,
            start_time=self._clock(),
        )

    def record_error(self, metrics: RequestMetrics, error: BaseException | str) -> None:
        """Mark a request as failed."""
        metrics.error_occurred = True
        metrics.error_type = (
            error if isinstance(error, str) else type(error).__name__
        )

    def end_request(self, metrics: RequestMetrics, response: Any = None) -> RequestMetrics:
        """Finish a request and store its record.

        Args:
            metrics: Record returned by :meth:`start_request`
            response: Final response. Textual responses get a token estimate.

        Returns:
            The finalized record

        Raises:
            ContractViolationError: If the record was already ended or the
                clock went backwards
        """
        self._require_running()
        end_time = self._clock()
        response_tokens = (
            self._estimator(response) if isinstance(response, str) else None
        )

        # Check and transition atomically so a record is stored at most once
        with self._lock:
            if metrics.status is RequestStatus.ENDED:
                raise ContractViolationError(
                    f"Request {metrics.request_id} has already ended"
                )
            duration_ms = (end_time - metrics.start_time) * 1000.0
            if duration_ms < 0:
                raise ContractViolationError(
                    f"Negative duration for request {metrics.request_id}: {duration_ms}ms"
                )
            metrics.end_time = end_time
            metrics.duration_ms = duration_ms
            metrics.status = RequestStatus.ENDED
            if response_tokens is not None:
                metrics.response_tokens = response_tokens
            self._metrics.append(metrics)

        logger.info(
            f"[Performance] request={metrics.request_id} "
            f"session={metrics.session_id} duration={duration_ms:.2f}ms "
            f"error={metrics.error_occurred} error_type={metrics.error_type}"
        )
        if duration_ms > self.config.slow_request_ms:
            logger.warning(
                f"[Performance] Slow request detected: {metrics.request_id} "
                f"session={metrics.session_id} duration={duration_ms:.2f}ms"
            )
        return metrics

    @contextmanager
    def track(self, session_id: str) -> Iterator[RequestMetrics]:
        """Time a block. Exceptions are recorded on the metrics and re-raised.

        If the block raised, a failure to end the request is logged and the
        block's exception propagates unchanged.
        """
        metrics = self.start_request(session_id)
        try:
            yield metrics
        except BaseException as e:
            self.record_error(metrics, e)
            try:
                self.end_request(metrics)
            except ContractViolationError as end_error:
                logger.error(
                    f"Could not end request {metrics.request_id} after "
                    f"{type(e).__name__}: {end_error}"
                )
            raise
        self.end_request(metrics)

    def _snapshot(self, session_id: str | None = None) -> list[RequestMetrics]:
        with self._lock:
            records = list(self._metrics)
        if session_id is not None:
            records = [m for m in records if m.session_id == session_id]
        return records

    def get_recent_metrics(self, limit: int = 10) -> list[RequestMetrics]:
        """Return up to ``limit`` most recent records, newest first."""
        self._require_running()
        if limit <= 0:
            return []
        records = self._snapshot()
        return list(reversed(records[-limit:]))

    def get_average_duration(self, session_id: str | None = None) -> float:
        """Mean duration in milliseconds. 0 when there are no records."""
        self._require_running()
        records = self._snapshot(session_id)
        if not records:
            return 0.0
        return sum(m.duration_ms or 0.0 for m in records) / len(records)

    def get_error_rate(self, session_id: str | None = None) -> float:
        """Percentage (0-100) of failed requests. 0 when there are no records."""
        self._require_running()
        records = self._snapshot(session_id)
        if not records:
            return 0.0
        errors = sum(1 for m in records if m.error_occurred)
        return errors / len(records) * 100.0

    def __len__(self) -> int:
        return len(self._metrics)
