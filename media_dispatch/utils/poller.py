"""
Media Dispatch - Task Poller
Bounded, fixed-interval, cancellable status polling for one job

States: waiting -> succeeded | failed | timed_out | cancelled

- Non-terminal or unreadable status -> keep waiting
- success (state "success" or successFlag 1) -> succeeded
- fail (state "fail" or successFlag 2/3) -> failed, provider message kept
- elapsed >= max_wait -> timed_out (the job may still finish server-side)
- transport errors, non-JSON bodies, 429 and 5xx on a status check are
  transient ticks; any other provider-reported error ends the loop
- the caller's cancel_event unblocks the wait immediately -> cancelled

Each status request is bounded by the poll interval, so neither the deadline
nor a cancellation is ever late by more than one interval.

Polls are strictly sequential; nothing is shared between pollers.
"""

from __future__ import annotations
import logging
import threading
import time
from typing import Any, Callable, Optional

from ..generation_types import JobState
from .errors import (
    ErrorKind,
    GenerationError,
    cancelled_error,
    classify_envelope,
    classify_task_failure,
    is_transient_status_error,
    status_check_failure,
    timeout_error,
)
from .task_status import TaskState, read_task_snapshot

logger = logging.getLogger("[MediaDispatch]")

# Shortest timeout given to a status request near the deadline
MIN_STATUS_TIMEOUT = 1.0


class TaskPoller:
    """Polls one job until a terminal state is reached"""

    def __init__(
        self,
        client,
        poll_interval: float = 3.0,
        max_wait: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
        cancel_event: threading.Event = None,
        progress_callback: Callable = None,
    ):
        """
        Args:
            client: GenerationAPI used for status requests
            poll_interval: Seconds between status requests
            max_wait: Maximum total seconds before giving up
            clock: Monotonic clock (injectable for tests)
            cancel_event: Set by the caller to stop polling
            progress_callback: Optional callback(task_id, state, progress)
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if max_wait <= 0:
            raise ValueError("max_wait must be positive")
        self._client = client
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._clock = clock
        self._cancel_event = cancel_event or threading.Event()
        self._progress_callback = progress_callback

    def status_timeout(self, elapsed: float) -> float:
        """Timeout for the next status request: the time left, at most one interval"""
        return min(self.poll_interval, max(self.max_wait - elapsed, MIN_STATUS_TIMEOUT))

    def _check_status(self, job, credential: str, elapsed: float):
        """
        One tick: returns a TaskSnapshot, or None when the tick was transient

        Raises:
            GenerationError: authentication, or providerFailed for a
                definitive provider error on the status endpoint
        """
        try:
            payload = self._client.get_task_status(job, credential, timeout=self.status_timeout(elapsed))
        except GenerationError as e:
            return self._status_error(job, e)

        job.last_response = payload

        envelope_error = classify_envelope(payload)
        if envelope_error is not None:
            return self._status_error(job, envelope_error)

        return read_task_snapshot(job.family, payload)

    def _status_error(self, job, error: GenerationError) -> None:
        if error.kind == ErrorKind.AUTHENTICATION:
            raise error
        if not is_transient_status_error(error):
            logger.error(f"[MediaDispatch] Status check for {job.task_id} was refused: {error}")
            raise status_check_failure(job.task_id, error)
        logger.warning(f"[MediaDispatch] Status check for {job.task_id} failed, will retry: {error}")
        self._last_error = error
        return None

    def run(self, job, credential: str) -> Any:
        """
        Poll until the job reaches a terminal state

        Returns:
            The terminal success payload (for the Result Normalizer)

        Raises:
            GenerationError: providerFailed, timeout, cancelled or authentication
        """
        if not job.task_id:
            raise ValueError("Cannot poll a job without a task identifier")

        job.transition(JobState.WAITING)
        self._last_error: Optional[GenerationError] = None
        started = self._clock()
        logger.info(
            f"[MediaDispatch] Polling task {job.task_id} every {self.poll_interval}s "
            f"for up to {self.max_wait}s"
        )

        while True:
            if self._cancel_event.is_set():
                return self._cancel(job, started)

            job.polls += 1
            try:
                snapshot = self._check_status(job, credential, self._clock() - started)
            except GenerationError:
                job.elapsed = self._clock() - started
                job.transition(JobState.FAILED)
                raise
            job.elapsed = self._clock() - started

            # Cancelled while the request was in flight
            if self._cancel_event.is_set():
                return self._cancel(job, started)

            if snapshot is not None:
                if self._progress_callback:
                    self._progress_callback(job.task_id, snapshot.state, snapshot.progress)

                if snapshot.state == TaskState.SUCCEEDED:
                    job.transition(JobState.SUCCEEDED)
                    logger.info(
                        f"[MediaDispatch] Task {job.task_id} succeeded after {job.polls} poll(s), {job.elapsed:.1f}s"
                    )
                    return snapshot.raw

                if snapshot.state == TaskState.FAILED:
                    job.transition(JobState.FAILED)
                    error = classify_task_failure(snapshot)
                    logger.error(f"[MediaDispatch] Task {job.task_id} failed: {error.provider_message or error.message}")
                    raise error

            if job.elapsed >= self.max_wait:
                job.transition(JobState.TIMED_OUT)
                logger.error(f"[MediaDispatch] Task {job.task_id} timed out after {job.elapsed:.1f}s")
                raise timeout_error(job.task_id, job.elapsed, self._last_error)

            # Never sleep past the deadline
            delay = min(self.poll_interval, self.max_wait - job.elapsed)
            if self._cancel_event.wait(delay):
                return self._cancel(job, started)

    def _cancel(self, job, started: float):
        job.elapsed = self._clock() - started
        job.transition(JobState.CANCELLED)
        logger.warning(f"[MediaDispatch] Polling for task {job.task_id} cancelled after {job.elapsed:.1f}s")
        raise cancelled_error(job.task_id)
