"""Kubernetes client creation.

This module centralizes loading of cluster credentials. Credentials are
treated as a pre-authenticated capability: a kubeconfig (optionally with an
explicit context) or, when none is available, the in-cluster service
account. Any failure is reported as ConfigError.
"""

from __future__ import annotations

import logging

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from kabuild.core.errors import ConfigError

logger = logging.getLogger(__name__)


def _format_config_error(message: str, context: str | None) -> str:
    """Return a user-friendly config error message."""
    if context:
        return (
            f"Could not load Kubernetes context '{context}': {message}\n"
            "List available contexts with:\n  $ kubectl config get-contexts"
        )
    return f"Could not load Kubernetes configuration: {message}"


def current_context_name(
    context: str | None = None,
    kubeconfig: str | None = None,
) -> str | None:
    """
    Return the name of the kubeconfig context that will be used.

    Returns None when no kubeconfig is available (in-cluster execution).
    """
    if context:
        return context
    try:
        _, active = config.list_kube_config_contexts(config_file=kubeconfig)
    except (ConfigException, OSError):
        return None
    if not active:
        return None
    return active.get("name")


def get_client(
    context: str | None = None,
    kubeconfig: str | None = None,
) -> client.ApiClient:
    """
    Create and return a configured Kubernetes ApiClient.

    The kubeconfig is tried first. When it cannot be loaded and no context
    or kubeconfig path was asked for explicitly, the in-cluster service
    account configuration is used instead.

    Raises:
        ConfigError: If no usable configuration can be loaded.
    """
    try:
        return config.new_client_from_config(config_file=kubeconfig, context=context)
    except (ConfigException, OSError) as exc:
        if context or kubeconfig:
            raise ConfigError(_format_config_error(str(exc), context)) from exc
        logger.debug("kubeconfig unavailable (%s), trying in-cluster config", exc)
        kube_exc = exc

    try:
        config.load_incluster_config()
    except ConfigException as exc:
        raise ConfigError(_format_config_error(str(kube_exc), None)) from exc
    return client.ApiClient()
