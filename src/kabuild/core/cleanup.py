"""Explicit teardown of build resources.

Nothing in the build pipeline deletes what it created. Callers that want the
pod and artifact gone run teardown explicitly, either right after a build or
later by job name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeardownResult:
    """Result for a single resource delete."""

    kind: str
    name: str
    deleted: bool
    error: str | None = None


class TeardownAdapter(Protocol):
    """Interface for deleting build resources."""

    def delete_pod(self, namespace: str, name: str) -> bool:
        """Delete a pod; return False if it did not exist."""
        ...

    def delete_config_map(self, namespace: str, name: str) -> bool:
        """Delete a ConfigMap; return False if it did not exist."""
        ...


def teardown(
    adapter: TeardownAdapter,
    namespace: str,
    job_name: str,
    artifact_name: str | None = None,
) -> list[TeardownResult]:
    """
    Delete the build pod and then its artifact.

    Errors are collected per resource so a failing pod delete does not keep
    the artifact around.

    Args:
        adapter: Adapter used to delete resources.
        namespace: Namespace of the build.
        job_name: Name of the build pod.
        artifact_name: Name of the artifact ConfigMap; defaults to job_name.

    Returns:
        One TeardownResult per resource, pod first.
    """
    targets = [
        ("pod", job_name, adapter.delete_pod),
        ("configmap", artifact_name or job_name, adapter.delete_config_map),
    ]
    results: list[TeardownResult] = []

    for kind, name, delete in targets:
        try:
            deleted = delete(namespace, name)
            results.append(TeardownResult(kind=kind, name=name, deleted=deleted))
        except Exception as e:  # keep teardown going; surface per-resource errors
            logger.warning("Failed to delete %s %s/%s: %s", kind, namespace, name, e)
            results.append(
                TeardownResult(kind=kind, name=name, deleted=False, error=str(e))
            )

    return results
