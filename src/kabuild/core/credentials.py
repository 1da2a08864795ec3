"""Registry credential resolution.

Reads the docker-registry secret and extracts the registry username that
prefixes the image destination. Selection is deterministic: configured
registries in their configured order, otherwise the `auths` entries in the
order they appear in the secret payload.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable, Protocol

from kabuild.core.errors import MalformedCredential, UsernameNotFound
from kabuild.core.jobs import CREDENTIAL_KEY

logger = logging.getLogger(__name__)


class SecretsAdapter(Protocol):
    """Interface for reading secrets from the cluster."""

    def read_secret_data(
        self, namespace: str, name: str, *, timeout: float | None = None
    ) -> dict[str, bytes]:
        """Return the decoded data of a secret."""
        ...


def username_from_docker_config(
    payload: bytes | str,
    registries: Iterable[str] = (),
) -> str:
    """
    Extract a username from a `.dockerconfigjson` payload.

    Args:
        payload: Raw JSON of shape {"auths": {<registry>: {"username": ...}}}.
        registries: Registries to consider, in order. Empty means every
                    entry of `auths` in document order.

    Returns:
        The first non-empty username found.

    Raises:
        MalformedCredential: If the payload is not JSON or has no `auths` object.
        UsernameNotFound: If no candidate entry has a username.
    """
    try:
        document = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise MalformedCredential(f"{CREDENTIAL_KEY} is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise MalformedCredential(f"{CREDENTIAL_KEY} must be a JSON object")

    auths = document.get("auths")
    if not isinstance(auths, dict):
        raise MalformedCredential("auths not found in docker config")

    wanted = list(registries)
    candidates = wanted if wanted else list(auths)

    for registry in candidates:
        entry = auths.get(registry)
        if not isinstance(entry, dict):
            continue
        username = entry.get("username")
        if isinstance(username, str) and username:
            logger.debug("Using username from registry %s", registry)
            return username

    if wanted:
        raise UsernameNotFound(
            f"username not found for registries: {', '.join(wanted)}"
        )
    raise UsernameNotFound("username not found in docker config")


def resolve_username(
    adapter: SecretsAdapter,
    namespace: str,
    secret_name: str,
    *,
    registries: Iterable[str] = (),
    timeout: float | None = None,
) -> str:
    """
    Read the registry secret and return the identity used in destinations.

    Args:
        adapter: Secrets adapter used to read the secret.
        namespace: Namespace holding the secret.
        secret_name: Name of the docker-registry secret.
        registries: Preferred registries, in order.
        timeout: Request timeout in seconds.

    Raises:
        CredentialNotFound: If the secret does not exist.
        MalformedCredential: If the payload is missing or malformed.
        UsernameNotFound: If no entry yields a username.
    """
    data = adapter.read_secret_data(namespace, secret_name, timeout=timeout)
    payload = data.get(CREDENTIAL_KEY)
    if payload is None:
        raise MalformedCredential(
            f"secret {secret_name} does not contain {CREDENTIAL_KEY}"
        )
    return username_from_docker_config(payload, registries)
