from pathlib import Path

import pytest

from kabuild.core.build import execute_build, outcome_succeeded, plan_build
from kabuild.core.cancel import CancelToken
from kabuild.core.config import BuildSettings
from kabuild.core.errors import (
    BuildError,
    CredentialNotFound,
    DeadlineExceeded,
    SubmissionError,
    UnknownTerminalPhase,
)
from kabuild.core.jobs import BuildRequest, JobPhase

DOCKERCONFIG = b'{"auths":{"registry.example.com":{"username":"alice"}}}'


class _LogStreamStub:
    def __iter__(self):
        return iter(["building", "pushing"])

    def close(self):
        pass


class _ClusterAdapterStub:
    def __init__(self, phases=(JobPhase.PENDING, JobPhase.RUNNING, JobPhase.SUCCEEDED)):
        self.phases = list(phases)
        self.calls: list[str] = []
        self.secret: dict[str, bytes] | None = {".dockerconfigjson": DOCKERCONFIG}
        self.reject_pod = False
        self.config_maps: list[str] = []
        self.pods = []

    def read_secret_data(self, namespace, name, *, timeout=None):
        self.calls.append("secret")
        if self.secret is None:
            raise CredentialNotFound(f"secret {namespace}/{name} not found")
        return self.secret

    def create_config_map(self, namespace, name, data, binary_data, labels, *, timeout=None):
        self.calls.append("configmap")
        self.config_maps.append(name)

    def create_pod(self, spec, *, timeout=None):
        self.calls.append("pod")
        if self.reject_pod:
            raise SubmissionError("pod rejected: 409 Conflict")
        self.pods.append(spec)
        return JobPhase.PENDING

    def get_pod_phase(self, namespace, name, *, timeout=None):
        self.calls.append("phase")
        return self.phases.pop(0)

    def open_log_stream(self, namespace, name, *, timeout=None):
        self.calls.append("logs")
        return _LogStreamStub()


@pytest.fixture
def build_dir(tmp_path: Path) -> Path:
    (tmp_path / "Dockerfile").write_text("FROM alpine\n")
    return tmp_path


def _plan(settings: BuildSettings | None = None):
    return plan_build(BuildRequest.create("myapp"), settings or BuildSettings())


def test_execute_build_runs_stages_in_order(build_dir: Path):
    adapter = _ClusterAdapterStub()
    plan = _plan()
    lines: list[str] = []

    result = execute_build(
        adapter,
        plan,
        BuildSettings(),
        build_dir,
        on_log=lines.append,
        sleep=lambda _: None,
    )

    assert adapter.calls == [
        "secret",
        "configmap",
        "pod",
        "phase",
        "phase",
        "logs",
        "phase",
    ]
    assert result.succeeded is True
    assert result.destination == "alice/myapp:latest"
    assert result.job_name == plan.job_name
    assert result.handle.name == plan.job_name
    assert result.handle.phase == JobPhase.PENDING
    assert adapter.config_maps == [plan.job_name]
    assert adapter.pods[0].artifact.name == plan.job_name
    assert lines == ["building", "pushing"]


def test_plan_build_uses_configured_artifact_name():
    plan = _plan(BuildSettings(artifact_name="build-input", job_prefix="b-", name_length=4))

    assert plan.artifact_name == "build-input"
    assert plan.job_name.startswith("b-")
    assert len(plan.job_name) == 6


def test_plan_build_generates_fresh_names():
    assert _plan().job_name != _plan().job_name


def test_credential_failure_stops_pipeline(build_dir: Path):
    adapter = _ClusterAdapterStub()
    adapter.secret = None

    with pytest.raises(BuildError) as exc_info:
        execute_build(adapter, _plan(), BuildSettings(), build_dir)

    assert exc_info.value.stage == "credentials"
    assert isinstance(exc_info.value.cause, CredentialNotFound)
    assert str(exc_info.value).startswith("credentials failed:")
    assert adapter.calls == ["secret"]


def test_artifact_failure_stops_pipeline(tmp_path: Path):
    adapter = _ClusterAdapterStub()

    with pytest.raises(BuildError) as exc_info:
        execute_build(adapter, _plan(), BuildSettings(), tmp_path / "missing")

    assert exc_info.value.stage == "artifact"
    assert adapter.calls == ["secret"]


def test_launch_failure_stops_pipeline(build_dir: Path):
    adapter = _ClusterAdapterStub()
    adapter.reject_pod = True

    with pytest.raises(BuildError) as exc_info:
        execute_build(adapter, _plan(), BuildSettings(), build_dir)

    assert exc_info.value.stage == "launch"
    assert adapter.calls == ["secret", "configmap", "pod"]


def test_failed_build_is_reported_not_raised(build_dir: Path):
    adapter = _ClusterAdapterStub([JobPhase.FAILED])

    result = execute_build(adapter, _plan(), BuildSettings(), build_dir, sleep=lambda _: None)

    assert result.phase == JobPhase.FAILED
    assert result.succeeded is False
    assert "logs" not in adapter.calls


def test_expired_deadline_is_wrapped(build_dir: Path):
    token = CancelToken(0)
    adapter = _ClusterAdapterStub()

    with pytest.raises(BuildError) as exc_info:
        execute_build(adapter, _plan(), BuildSettings(), build_dir, cancel=token)

    assert exc_info.value.stage == "credentials"
    assert isinstance(exc_info.value.cause, DeadlineExceeded)
    assert adapter.calls == []


def test_outcome_succeeded():
    assert outcome_succeeded(JobPhase.SUCCEEDED) is True
    assert outcome_succeeded(JobPhase.FAILED) is False

    with pytest.raises(UnknownTerminalPhase):
        outcome_succeeded(JobPhase.RUNNING)
