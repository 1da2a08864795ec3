"""Build settings and environment loading.

Settings have built-in defaults, may be overridden through KABUILD_*
environment variables, and finally through explicit keyword overrides
(typically CLI options). Invalid values raise ConfigError.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from kabuild.core.errors import ConfigError

DEFAULT_BUILDER_IMAGE = "gcr.io/kaniko-project/executor:latest"


@dataclass(frozen=True)
class BuildSettings:
    """
    Tunables for a single build invocation.

    Attributes:
        namespace: Kubernetes namespace for the secret, artifact and pod.
        secret_name: Name of the docker-registry secret holding credentials.
        builder_image: Container image that performs the build.
        poll_interval: Seconds between pod phase reads.
        job_prefix: Prefix of generated job (pod) names.
        name_length: Number of random characters appended to job_prefix.
        registries: Registries to prefer when picking the username, in order.
                    Empty means document order of the secret's auths map.
        artifact_name: Fixed artifact (ConfigMap) name. None scopes the
                       artifact to the generated job name.
        dockerfile: Dockerfile path relative to the build directory.
    """

    namespace: str = "default"
    secret_name: str = "dockercred"
    builder_image: str = DEFAULT_BUILDER_IMAGE
    poll_interval: float = 10
    job_prefix: str = "kaniko-pod-"
    name_length: int = 10
    registries: tuple[str, ...] = ()
    artifact_name: str | None = None
    dockerfile: str = "Dockerfile"


_ENV_PREFIX = "KABUILD_"


def _parse_positive(name: str, raw: str, cast: type) -> Any:
    """Parse a strictly positive number from an environment value."""
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{_ENV_PREFIX}{name.upper()} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{_ENV_PREFIX}{name.upper()} must be > 0, got {raw!r}")
    return value


def _parse_registries(raw: str) -> tuple[str, ...]:
    return tuple(r.strip() for r in raw.split(",") if r.strip())


def validate_settings(settings: BuildSettings) -> BuildSettings:
    """Reject settings that cannot produce a valid build."""
    if not settings.namespace:
        raise ConfigError("namespace must not be empty")
    if not settings.secret_name:
        raise ConfigError("secret_name must not be empty")
    if settings.poll_interval <= 0:
        raise ConfigError("poll_interval must be > 0")
    if settings.name_length < 1:
        raise ConfigError("name_length must be >= 1")
    if not settings.builder_image:
        raise ConfigError("builder_image must not be empty")
    return settings


def load_settings(
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> BuildSettings:
    """
    Build settings from defaults, the environment and explicit overrides.

    Overrides whose value is None are ignored, so optional CLI options can be
    passed through unconditionally.

    Args:
        env: Environment mapping; defaults to os.environ.
        **overrides: Field values that win over the environment.

    Returns:
        A validated BuildSettings instance.

    Raises:
        ConfigError: If a value is invalid or an override names no field.
    """
    env = os.environ if env is None else env
    known = {f.name for f in fields(BuildSettings)}
    values: dict[str, Any] = {}

    for name in known:
        raw = env.get(f"{_ENV_PREFIX}{name.upper()}")
        if raw is None or raw.strip() == "":
            continue
        raw = raw.strip()
        if name == "poll_interval":
            values[name] = _parse_positive(name, raw, float)
        elif name == "name_length":
            values[name] = _parse_positive(name, raw, int)
        elif name == "registries":
            values[name] = _parse_registries(raw)
        else:
            values[name] = raw

    for name, value in overrides.items():
        if name not in known:
            raise ConfigError(f"Unknown setting: {name}")
        if value is None:
            continue
        if name == "registries" and isinstance(value, str):
            value = _parse_registries(value)
        values[name] = value

    return validate_settings(replace(BuildSettings(), **values))
