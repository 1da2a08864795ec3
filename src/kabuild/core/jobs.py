"""Core build job domain models.

This module defines the build job data structures (BuildRequest, JobPhase,
JobSpec, JobHandle, ArtifactRef) together with the small pure helpers that
derive values from them: job name generation and destination construction.
It is intentionally free of Kubernetes client types and CLI concerns so the
same models can be used by the adapter, the CLI and tests.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from kabuild.core.errors import UnknownTerminalPhase

DEFAULT_TAG = "latest"
NAME_ALPHABET = string.ascii_lowercase + string.digits

WORKSPACE_PATH = "/workspace"
CREDENTIAL_PATH = "/kaniko/.docker"
CREDENTIAL_KEY = ".dockerconfigjson"
CREDENTIAL_FILE = "config.json"
RESTART_NEVER = "Never"


@dataclass(frozen=True)
class BuildRequest:
    """
    What the caller asked to build.

    Attributes:
        repository: Image repository name (without registry identity).
        tag: Image tag; DEFAULT_TAG when the caller gave none.
    """

    repository: str
    tag: str = DEFAULT_TAG

    @classmethod
    def create(cls, repository: str, tag: str | None = None) -> BuildRequest:
        """Build a request, defaulting an empty tag to DEFAULT_TAG."""
        repository = (repository or "").strip()
        if not repository:
            raise ValueError("repository must not be empty")
        return cls(repository=repository, tag=(tag or "").strip() or DEFAULT_TAG)


class JobPhase(str, Enum):
    """
    Enumeration of Kubernetes pod phases observed for a build job.

    Values:
        PENDING: Accepted by the cluster, containers not running yet.
        RUNNING: The builder container is executing.
        SUCCEEDED: The build finished successfully.
        FAILED: The build finished with an error.
        UNKNOWN: The node could not be reached; polled again.
    """

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @property
    def terminal(self) -> bool:
        return self in (JobPhase.SUCCEEDED, JobPhase.FAILED)

    @classmethod
    def parse(cls, raw: str | None) -> JobPhase:
        """
        Map a raw phase string reported by the cluster to a JobPhase.

        A pod that has no status yet is reported as PENDING.

        Raises:
            UnknownTerminalPhase: If the phase is outside the known set.
        """
        if raw is None or raw == "":
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError as exc:
            raise UnknownTerminalPhase(f"unrecognized pod phase: {raw!r}") from exc


@dataclass(frozen=True)
class ArtifactRef:
    """
    Reference to a staged build artifact (ConfigMap).

    Attributes:
        name: ConfigMap name.
        namespace: Namespace the ConfigMap lives in.
        items: (key, relative path) pairs projecting each ConfigMap key back
               to its original path inside the workspace volume.
    """

    name: str
    namespace: str
    items: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class JobSpec:
    """SDK-free description of the build pod."""

    name: str
    namespace: str
    image: str
    args: tuple[str, ...]
    artifact: ArtifactRef
    secret_name: str
    container_name: str = "kaniko"
    secret_key: str = CREDENTIAL_KEY
    secret_file: str = CREDENTIAL_FILE
    workspace_path: str = WORKSPACE_PATH
    credential_path: str = CREDENTIAL_PATH
    restart_policy: str = RESTART_NEVER
    labels: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class JobHandle:
    """A submitted build job."""

    name: str
    namespace: str
    phase: JobPhase = JobPhase.PENDING


def generate_job_name(prefix: str, length: int) -> str:
    """
    Return `prefix` followed by `length` random lowercase alphanumerics.

    Uses the `secrets` module so names are not predictable by other tenants
    of the cluster.
    """
    if length < 1:
        raise ValueError("length must be >= 1")
    return prefix + "".join(secrets.choice(NAME_ALPHABET) for _ in range(length))


def build_destination(identity: str, repository: str, tag: str | None = None) -> str:
    """Return the image destination `<identity>/<repository>:<tag>`."""
    return f"{identity}/{repository}:{tag or DEFAULT_TAG}"


def job_labels(job_name: str) -> dict[str, str]:
    """Labels attached to every resource created for a build."""
    return {
        "app.kubernetes.io/managed-by": "kabuild",
        "kabuild/job": job_name,
    }
