"""Error taxonomy for kabuild.

Every failure raised by the core derives from KabuildError so the CLI can
catch a single type at the command boundary. The pipeline wraps stage
failures into BuildError to keep the failing stage visible to the caller.
"""

from __future__ import annotations


class KabuildError(RuntimeError):
    """Base class for all kabuild failures."""


class ConfigError(KabuildError):
    """Raised when cluster configuration or settings cannot be loaded."""


class CredentialError(KabuildError):
    """Base class for registry credential failures."""


class CredentialNotFound(CredentialError):
    """Raised when the registry credential secret does not exist."""


class MalformedCredential(CredentialError):
    """Raised when the secret payload is not a usable docker config."""


class UsernameNotFound(CredentialError):
    """Raised when no registry entry yields a username."""


class IOFailure(KabuildError):
    """Raised when the local build directory cannot be read."""


class ClusterAPIError(KabuildError):
    """Raised when a Kubernetes API call fails."""


class SubmissionError(ClusterAPIError):
    """Raised when the cluster rejects an artifact or pod."""


class PollError(ClusterAPIError):
    """Raised when the pod phase cannot be read."""


class LogStreamError(ClusterAPIError):
    """Raised when the pod log stream cannot be opened or read."""


class UnknownTerminalPhase(KabuildError):
    """Raised when a pod reports a phase outside the known set."""


class BuildCancelled(KabuildError):
    """Raised when a build is cancelled through its CancelToken."""


class DeadlineExceeded(BuildCancelled):
    """Raised when a build runs past its deadline."""


class BuildError(KabuildError):
    """
    Stage-context wrapper raised by the build pipeline.

    Attributes:
        stage: Name of the pipeline stage that failed.
        cause: The underlying kabuild error.
    """

    def __init__(self, stage: str, cause: KabuildError) -> None:
        super().__init__(f"{stage} failed: {cause}")
        self.stage = stage
        self.cause = cause
