import pytest
import urllib3

from kabuild.core.adapters.kubecluster import PodLogStream
from kabuild.core.cancel import CancelToken
from kabuild.core.errors import (
    BuildCancelled,
    DeadlineExceeded,
    LogStreamError,
    PollError,
)
from kabuild.core.jobs import JobPhase
from kabuild.core.supervisor import supervise


class _LogStreamStub:
    def __init__(self, lines):
        self.lines = lines
        self.closed = False

    def __iter__(self):
        return iter(self.lines)

    def close(self):
        self.closed = True


class _StatusAdapterStub:
    def __init__(self, phases, lines=("step 1", "step 2"), fail_logs=False):
        self.phases = list(phases)
        self.lines = list(lines)
        self.fail_logs = fail_logs
        self.polls = 0
        self.streams: list[_LogStreamStub] = []

    def get_pod_phase(self, namespace, name, *, timeout=None):
        self.polls += 1
        return self.phases.pop(0)

    def open_log_stream(self, namespace, name, *, timeout=None):
        if self.fail_logs:
            raise LogStreamError("failed to open logs: 400 Bad Request")
        stream = _LogStreamStub(self.lines)
        self.streams.append(stream)
        return stream


def test_supervise_streams_once_and_returns_succeeded():
    adapter = _StatusAdapterStub(
        [
            JobPhase.PENDING,
            JobPhase.PENDING,
            JobPhase.RUNNING,
            JobPhase.RUNNING,
            JobPhase.SUCCEEDED,
        ]
    )
    sleeps: list[float] = []
    lines: list[str] = []

    phase = supervise(
        adapter,
        "default",
        "kaniko-pod-abc",
        poll_interval=3,
        on_log=lines.append,
        sleep=sleeps.append,
    )

    assert phase == JobPhase.SUCCEEDED
    assert adapter.polls == 5
    assert len(adapter.streams) == 1
    assert adapter.streams[0].closed is True
    assert lines == ["step 1", "step 2"]
    assert sleeps == [3, 3, 3, 3]


def test_supervise_failed_on_first_poll_never_streams():
    adapter = _StatusAdapterStub([JobPhase.FAILED])
    sleeps: list[float] = []

    phase = supervise(adapter, "default", "kaniko-pod-abc", sleep=sleeps.append)

    assert phase == JobPhase.FAILED
    assert adapter.streams == []
    assert sleeps == []


def test_supervise_reports_phase_changes_only():
    adapter = _StatusAdapterStub(
        [JobPhase.PENDING, JobPhase.PENDING, JobPhase.UNKNOWN, JobPhase.FAILED]
    )
    seen: list[JobPhase] = []

    supervise(adapter, "default", "p", on_phase=seen.append, sleep=lambda _: None)

    assert seen == [JobPhase.PENDING, JobPhase.UNKNOWN, JobPhase.FAILED]


def test_supervise_log_stream_failure_aborts():
    adapter = _StatusAdapterStub([JobPhase.RUNNING, JobPhase.SUCCEEDED], fail_logs=True)

    with pytest.raises(LogStreamError):
        supervise(adapter, "default", "p", sleep=lambda _: None)

    assert adapter.polls == 1


def test_supervise_propagates_poll_error():
    class _BrokenAdapter(_StatusAdapterStub):
        def get_pod_phase(self, namespace, name, *, timeout=None):
            raise PollError("failed to read pod: 500 Internal Server Error")

    with pytest.raises(PollError):
        supervise(_BrokenAdapter([]), "default", "p", sleep=lambda _: None)


def test_supervise_stops_when_cancelled():
    adapter = _StatusAdapterStub([JobPhase.PENDING] * 5)
    token = CancelToken()

    def _sleep(_seconds: float) -> None:
        token.cancel()

    with pytest.raises(BuildCancelled):
        supervise(adapter, "default", "p", cancel=token, sleep=_sleep)

    assert adapter.polls == 1


def test_supervise_cancel_between_log_lines_closes_stream():
    adapter = _StatusAdapterStub([JobPhase.RUNNING], lines=["a", "b", "c"])
    token = CancelToken()
    lines: list[str] = []

    def _on_log(line: str) -> None:
        lines.append(line)
        token.cancel()

    with pytest.raises(BuildCancelled):
        supervise(adapter, "default", "p", cancel=token, on_log=_on_log)

    assert lines == ["a"]
    assert adapter.streams[0].closed is True


class _TimedOutResponse:
    def __init__(self, clock):
        self.clock = clock
        self.closed = False

    def stream(self, decode_content=True):
        yield b"step 1\n"
        self.clock.now += 60
        raise urllib3.exceptions.ReadTimeoutError(None, None, "Read timed out.")

    def close(self):
        self.closed = True

    def release_conn(self):
        pass


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_supervise_read_timeout_at_deadline_raises_deadline_exceeded():
    clock = _Clock()
    response = _TimedOutResponse(clock)

    class _TimingOutAdapter(_StatusAdapterStub):
        def open_log_stream(self, namespace, name, *, timeout=None):
            return PodLogStream(response, name)

    adapter = _TimingOutAdapter([JobPhase.RUNNING])
    lines: list[str] = []

    with pytest.raises(DeadlineExceeded) as exc_info:
        supervise(
            adapter,
            "default",
            "p",
            cancel=CancelToken(30, clock=clock),
            on_log=lines.append,
        )

    assert lines == ["step 1"]
    assert isinstance(exc_info.value.__cause__, LogStreamError)
    assert response.closed is True


def test_supervise_broken_stream_before_deadline_is_log_error():
    clock = _Clock()
    response = _TimedOutResponse(clock)

    class _TimingOutAdapter(_StatusAdapterStub):
        def open_log_stream(self, namespace, name, *, timeout=None):
            return PodLogStream(response, name)

    with pytest.raises(LogStreamError):
        supervise(
            _TimingOutAdapter([JobPhase.RUNNING]),
            "default",
            "p",
            cancel=CancelToken(300, clock=clock),
        )
