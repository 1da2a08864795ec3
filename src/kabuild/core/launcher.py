"""Build job construction and submission."""

from __future__ import annotations

import logging
from typing import Protocol

from kabuild.core.config import BuildSettings
from kabuild.core.jobs import (
    ArtifactRef,
    BuildRequest,
    JobHandle,
    JobPhase,
    JobSpec,
    WORKSPACE_PATH,
    build_destination,
    job_labels,
)

logger = logging.getLogger(__name__)


class PodsAdapter(Protocol):
    """Interface for submitting build pods."""

    def create_pod(self, spec: JobSpec, *, timeout: float | None = None) -> JobPhase:
        """Submit a pod and return the phase reported at creation."""
        ...


def build_args(destination: str, dockerfile: str = "Dockerfile") -> tuple[str, ...]:
    """Return the builder command-line arguments."""
    return (
        f"--dockerfile={WORKSPACE_PATH}/{dockerfile.lstrip('/')}",
        f"--context=dir://{WORKSPACE_PATH}/",
        f"--destination={destination}",
    )


def build_job_spec(
    namespace: str,
    job_name: str,
    artifact: ArtifactRef,
    identity: str,
    request: BuildRequest,
    settings: BuildSettings,
) -> JobSpec:
    """
    Describe the build pod for a request.

    The pod runs a single builder container, mounts the staged artifact
    read-only as its workspace and projects the registry secret as the
    builder's docker config. It is never restarted.
    """
    destination = build_destination(identity, request.repository, request.tag)
    return JobSpec(
        name=job_name,
        namespace=namespace,
        image=settings.builder_image,
        args=build_args(destination, settings.dockerfile),
        artifact=artifact,
        secret_name=settings.secret_name,
        labels=job_labels(job_name),
    )


def launch(
    adapter: PodsAdapter,
    namespace: str,
    job_name: str,
    artifact: ArtifactRef,
    identity: str,
    request: BuildRequest,
    settings: BuildSettings,
    *,
    timeout: float | None = None,
) -> JobHandle:
    """
    Submit the build pod.

    Raises:
        SubmissionError: If the cluster rejects the pod.
    """
    spec = build_job_spec(namespace, job_name, artifact, identity, request, settings)
    phase = adapter.create_pod(spec, timeout=timeout)
    logger.info("Pod %s[%s] created", job_name, phase.value)
    return JobHandle(name=job_name, namespace=namespace, phase=phase)
