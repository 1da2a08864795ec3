"""Application context management for the CLI."""

from dataclasses import dataclass

from kubernetes.client import ApiClient

from kabuild.cli.common.exits import die
from kabuild.core.adapters.kubecluster import KubernetesClusterAdapter
from kabuild.core.auth import current_context_name, get_client
from kabuild.core.errors import ConfigError


@dataclass
class ClusterAppContext:
    """Application context holding the Kubernetes client and cluster adapter."""

    context_name: str | None
    client: ApiClient
    adapter: KubernetesClusterAdapter


def build_cluster_context(
    context: str | None = None, kubeconfig: str | None = None
) -> ClusterAppContext:
    """Build and return the application context with Kubernetes client and adapter.

    Args:
        context: Optional kubeconfig context name; the current context otherwise.
        kubeconfig: Optional kubeconfig path.

    Returns:
        ClusterAppContext: Application context with configured client and adapter.
    """
    try:
        api_client = get_client(context, kubeconfig)
    except ConfigError as exc:
        die(str(exc), code=1)
    return ClusterAppContext(
        context_name=current_context_name(context, kubeconfig),
        client=api_client,
        adapter=KubernetesClusterAdapter(api_client),
    )
