"""Build job lifecycle supervision.

The supervisor polls the pod phase at a fixed interval until it reaches a
terminal phase. While the pod is running it follows the pod log once and
forwards every line to the caller. It only observes the pod; deleting it is
a separate teardown step.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterator, Protocol

from kabuild.core.cancel import CancelToken
from kabuild.core.errors import LogStreamError
from kabuild.core.jobs import JobPhase

logger = logging.getLogger(__name__)


class LogStream(Protocol):
    """An open, followed pod log."""

    def __iter__(self) -> Iterator[str]:
        ...

    def close(self) -> None:
        ...


class JobStatusAdapter(Protocol):
    """Interface for observing a running build job."""

    def get_pod_phase(
        self, namespace: str, name: str, *, timeout: float | None = None
    ) -> JobPhase:
        """Return the current phase of a pod."""
        ...

    def open_log_stream(
        self, namespace: str, name: str, *, timeout: float | None = None
    ) -> LogStream:
        """Open a followed log stream for a pod."""
        ...


def _follow(
    stream: LogStream,
    name: str,
    on_log: Callable[[str], None] | None,
    cancel: CancelToken | None,
) -> None:
    """Forward log lines until the stream ends, then close it."""
    try:
        for line in stream:
            if cancel is not None:
                cancel.check()
            if on_log is not None:
                on_log(line)
    except LogStreamError as exc:
        if cancel is not None:
            cancel.check_from(exc)
        raise
    except OSError as exc:
        if cancel is not None:
            cancel.check_from(exc)
        raise LogStreamError(f"log stream for {name} broke: {exc}") from exc
    finally:
        stream.close()


def supervise(
    adapter: JobStatusAdapter,
    namespace: str,
    job_name: str,
    *,
    poll_interval: float = 10,
    cancel: CancelToken | None = None,
    on_log: Callable[[str], None] | None = None,
    on_phase: Callable[[JobPhase], None] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> JobPhase:
    """
    Block until a build job reaches a terminal phase.

    The phase is read fresh on every iteration. The first time the job is
    seen RUNNING, its log is followed until the stream ends; no second
    stream is opened for the same job.

    Args:
        adapter: Status adapter used to read phases and logs.
        namespace: Namespace of the job.
        job_name: Name of the job (pod).
        poll_interval: Seconds to wait between phase reads.
        cancel: Optional token checked before every blocking call.
        on_log: Called with every log line.
        on_phase: Called whenever the observed phase changes.
        sleep: Sleep function; defaults to the token's sleep or time.sleep.

    Returns:
        JobPhase.SUCCEEDED or JobPhase.FAILED.

    Raises:
        PollError: If the phase cannot be read.
        LogStreamError: If the log stream cannot be opened or read.
        BuildCancelled: If the token is cancelled or its deadline passes.
    """
    if sleep is None:
        sleep = cancel.sleep if cancel is not None else time.sleep

    def _timeout() -> float | None:
        if cancel is None:
            return None
        cancel.check()
        return cancel.remaining()

    streamed = False
    last: JobPhase | None = None

    while True:
        phase = adapter.get_pod_phase(namespace, job_name, timeout=_timeout())

        if phase != last:
            logger.debug("Pod %s phase %s", job_name, phase.value)
            if on_phase is not None:
                on_phase(phase)
            last = phase

        if phase.terminal:
            return phase

        if phase == JobPhase.RUNNING and not streamed:
            streamed = True
            stream = adapter.open_log_stream(namespace, job_name, timeout=_timeout())
            _follow(stream, job_name, on_log, cancel)

        sleep(poll_interval)
