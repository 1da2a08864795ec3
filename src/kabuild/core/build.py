"""Build pipeline.

A build runs strictly in sequence: resolve the registry identity, stage the
build directory, launch the pod and supervise it to a terminal phase. Any
kabuild error raised by a stage aborts the pipeline and is re-raised as a
BuildError carrying the stage name. Nothing is retried and nothing is
cleaned up here; see kabuild.core.cleanup.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Protocol

from kabuild.core.artifacts import ConfigMapsAdapter, stage
from kabuild.core.cancel import CancelToken
from kabuild.core.config import BuildSettings
from kabuild.core.credentials import SecretsAdapter, resolve_username
from kabuild.core.errors import BuildError, KabuildError, UnknownTerminalPhase
from kabuild.core.jobs import (
    BuildRequest,
    JobHandle,
    JobPhase,
    build_destination,
    generate_job_name,
    job_labels,
)
from kabuild.core.launcher import PodsAdapter, launch
from kabuild.core.supervisor import JobStatusAdapter, supervise

logger = logging.getLogger(__name__)


class ClusterAdapter(
    SecretsAdapter, ConfigMapsAdapter, PodsAdapter, JobStatusAdapter, Protocol
):
    """Everything the pipeline needs from the cluster."""


@dataclass(frozen=True)
class BuildPlan:
    """
    Names chosen for a build before anything is written to the cluster.

    Attributes:
        request: The build request.
        namespace: Namespace all resources are created in.
        job_name: Freshly generated pod name.
        artifact_name: ConfigMap name (the job name unless configured).
    """

    request: BuildRequest
    namespace: str
    job_name: str
    artifact_name: str


@dataclass(frozen=True)
class BuildResult:
    """
    Outcome of a supervised build.

    Attributes:
        handle: The job as submitted, with the phase reported at creation.
        phase: The terminal phase observed by supervision.
    """

    job_name: str
    artifact_name: str
    destination: str
    phase: JobPhase
    handle: JobHandle

    @property
    def succeeded(self) -> bool:
        return self.phase == JobPhase.SUCCEEDED


def plan_build(request: BuildRequest, settings: BuildSettings) -> BuildPlan:
    """Generate the job name and pick the artifact name for a build."""
    job_name = generate_job_name(settings.job_prefix, settings.name_length)
    return BuildPlan(
        request=request,
        namespace=settings.namespace,
        job_name=job_name,
        artifact_name=settings.artifact_name or job_name,
    )


def outcome_succeeded(phase: JobPhase) -> bool:
    """
    Map a terminal phase to success or failure.

    Raises:
        UnknownTerminalPhase: If the phase is not terminal.
    """
    if not phase.terminal:
        raise UnknownTerminalPhase(f"phase {phase.value} is not terminal")
    return phase == JobPhase.SUCCEEDED


@contextmanager
def _stage(name: str) -> Iterator[None]:
    """Wrap kabuild errors raised inside a stage with the stage name."""
    logger.debug("Stage %s started", name)
    try:
        yield
    except BuildError:
        raise
    except KabuildError as exc:
        raise BuildError(name, exc) from exc


def execute_build(
    adapter: ClusterAdapter,
    plan: BuildPlan,
    settings: BuildSettings,
    source_dir: str | os.PathLike[str],
    *,
    cancel: CancelToken | None = None,
    on_log: Callable[[str], None] | None = None,
    on_phase: Callable[[JobPhase], None] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> BuildResult:
    """
    Run a planned build to completion.

    Args:
        adapter: Cluster adapter.
        plan: Names produced by plan_build.
        settings: Build settings.
        source_dir: Directory staged as the build context.
        cancel: Optional cancellation token threaded through every stage.
        on_log: Called with every builder log line.
        on_phase: Called on every observed phase change.
        sleep: Poll sleep override (tests).

    Returns:
        The BuildResult with the terminal phase.

    Raises:
        BuildError: If any stage fails; `stage` names it.
    """

    def _timeout() -> float | None:
        if cancel is None:
            return None
        cancel.check()
        return cancel.remaining()

    with _stage("credentials"):
        identity = resolve_username(
            adapter,
            plan.namespace,
            settings.secret_name,
            registries=settings.registries,
            timeout=_timeout(),
        )

    with _stage("artifact"):
        artifact = stage(
            adapter,
            plan.namespace,
            source_dir,
            plan.artifact_name,
            labels=job_labels(plan.job_name),
            timeout=_timeout(),
        )

    with _stage("launch"):
        handle = launch(
            adapter,
            plan.namespace,
            plan.job_name,
            artifact,
            identity,
            plan.request,
            settings,
            timeout=_timeout(),
        )

    with _stage("supervise"):
        phase = supervise(
            adapter,
            plan.namespace,
            plan.job_name,
            poll_interval=settings.poll_interval,
            cancel=cancel,
            on_log=on_log,
            on_phase=on_phase,
            sleep=sleep,
        )

    return BuildResult(
        job_name=plan.job_name,
        artifact_name=plan.artifact_name,
        destination=build_destination(identity, plan.request.repository, plan.request.tag),
        phase=phase,
        handle=handle,
    )
