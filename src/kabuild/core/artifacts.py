"""Build artifact staging.

A build directory is snapshotted into memory by a full recursive scan and
submitted as one ConfigMap. ConfigMap keys cannot contain path separators,
so each relative path gets a valid key and the key to path mapping travels
in the ArtifactRef; the pod volume uses it to restore the original layout.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import re
from pathlib import Path
from typing import Mapping, Protocol

from kabuild.core.errors import IOFailure
from kabuild.core.jobs import ArtifactRef

logger = logging.getLogger(__name__)

_VALID_KEY = re.compile(r"^[-._a-zA-Z0-9]+$")
_INVALID_KEY_CHARS = re.compile(r"[^-._a-zA-Z0-9]")
_MAX_KEY_LENGTH = 253


class ConfigMapsAdapter(Protocol):
    """Interface for creating artifacts on the cluster."""

    def create_config_map(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        binary_data: dict[str, str],
        labels: Mapping[str, str],
        *,
        timeout: float | None = None,
    ) -> None:
        """Create a ConfigMap."""
        ...


def snapshot_directory(local_dir: str | os.PathLike[str]) -> dict[str, bytes]:
    """
    Read every regular file under `local_dir` into memory.

    Returns:
        A mapping of POSIX relative path to file content.

    Raises:
        IOFailure: If the directory is missing or any entry cannot be read.
    """
    root = Path(local_dir)
    if not root.is_dir():
        raise IOFailure(f"build directory not found: {root}")

    def _raise(exc: OSError) -> None:
        raise exc

    files: dict[str, bytes] = {}
    try:
        for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
            for filename in filenames:
                path = Path(dirpath) / filename
                if not path.is_file():
                    continue
                files[path.relative_to(root).as_posix()] = path.read_bytes()
    except OSError as exc:
        raise IOFailure(f"failed to read build directory {root}: {exc}") from exc

    logger.debug("Snapshotted %d file(s) from %s", len(files), root)
    return files


def artifact_key(path: str) -> str:
    """Return a valid ConfigMap key for a relative path."""
    if (
        _VALID_KEY.match(path)
        and not path.startswith("..")
        and len(path) <= _MAX_KEY_LENGTH
    ):
        return path
    digest = hashlib.sha256(path.encode("utf-8")).hexdigest()[:8]
    sanitized = _INVALID_KEY_CHARS.sub("_", path).strip(".") or "file"
    return f"{sanitized[: _MAX_KEY_LENGTH - 9]}.{digest}"


def encode_artifact(
    files: Mapping[str, bytes],
) -> tuple[dict[str, str], dict[str, str], tuple[tuple[str, str], ...]]:
    """
    Split files into ConfigMap `data` and `binary_data` payloads.

    UTF-8 text goes to `data`; everything else is base64 encoded into
    `binary_data`. The volume cannot project a file whose relative path
    starts with "..", so such files are rejected.

    Returns:
        (data, binary_data, items) where items are (key, path) pairs.

    Raises:
        IOFailure: If a relative path starts with "..".
    """
    data: dict[str, str] = {}
    binary_data: dict[str, str] = {}
    items: list[tuple[str, str]] = []

    for path in sorted(files):
        if path.startswith(".."):
            raise IOFailure(f"cannot stage {path!r}: paths may not start with '..'")
        content = files[path]
        key = artifact_key(path)
        try:
            data[key] = content.decode("utf-8")
        except UnicodeDecodeError:
            binary_data[key] = base64.b64encode(content).decode("ascii")
        items.append((key, path))

    return data, binary_data, tuple(items)


def decode_artifact(
    data: Mapping[str, str] | None,
    binary_data: Mapping[str, str] | None,
    items: tuple[tuple[str, str], ...],
) -> dict[str, bytes]:
    """Rebuild the path to content mapping from a ConfigMap payload."""
    data = data or {}
    binary_data = binary_data or {}
    files: dict[str, bytes] = {}
    for key, path in items:
        if key in data:
            files[path] = data[key].encode("utf-8")
        else:
            files[path] = base64.b64decode(binary_data[key])
    return files


def stage(
    adapter: ConfigMapsAdapter,
    namespace: str,
    local_dir: str | os.PathLike[str],
    artifact_name: str,
    *,
    labels: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> ArtifactRef:
    """
    Snapshot `local_dir` and submit it as a ConfigMap named `artifact_name`.

    The whole directory is read before anything is submitted, so a read
    failure never leaves a partial artifact on the cluster.

    Raises:
        IOFailure: If the directory cannot be read or holds a path starting
                   with "..".
        SubmissionError: If the cluster rejects the ConfigMap.
    """
    files = snapshot_directory(local_dir)
    data, binary_data, items = encode_artifact(files)

    adapter.create_config_map(
        namespace,
        artifact_name,
        data,
        binary_data,
        dict(labels or {}),
        timeout=timeout,
    )
    logger.info("Staged %d file(s) as configmap %s/%s", len(items), namespace, artifact_name)
    return ArtifactRef(name=artifact_name, namespace=namespace, items=items)
