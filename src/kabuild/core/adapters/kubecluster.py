from __future__ import annotations

import base64
import codecs
import logging
from typing import Any, Iterator, Mapping

import urllib3
from kubernetes import client
from kubernetes.client.exceptions import ApiException

from kabuild.core.errors import (
    ClusterAPIError,
    CredentialNotFound,
    LogStreamError,
    PollError,
    SubmissionError,
)
from kabuild.core.jobs import JobPhase, JobSpec

logger = logging.getLogger(__name__)

_ARTIFACT_VOLUME = "dockerfile-config"
_SECRET_VOLUME = "kaniko-secret"
_API_ERRORS = (ApiException, urllib3.exceptions.HTTPError)


def _describe(exc: Exception) -> str:
    """Return a short description of a Kubernetes client error."""
    if isinstance(exc, ApiException):
        return f"{exc.status} {exc.reason}".strip()
    return str(exc)


def _request_kwargs(timeout: float | None) -> dict[str, Any]:
    return {"_request_timeout": timeout} if timeout is not None else {}


def pod_manifest(spec: JobSpec) -> client.V1Pod:
    """Translate a JobSpec into a Kubernetes V1Pod."""
    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(name=spec.name, labels=dict(spec.labels)),
        spec=client.V1PodSpec(
            restart_policy=spec.restart_policy,
            containers=[
                client.V1Container(
                    name=spec.container_name,
                    image=spec.image,
                    args=list(spec.args),
                    volume_mounts=[
                        client.V1VolumeMount(
                            name=_ARTIFACT_VOLUME,
                            mount_path=spec.workspace_path,
                            read_only=True,
                        ),
                        client.V1VolumeMount(
                            name=_SECRET_VOLUME,
                            mount_path=spec.credential_path,
                            read_only=True,
                        ),
                    ],
                )
            ],
            volumes=[
                client.V1Volume(
                    name=_ARTIFACT_VOLUME,
                    config_map=client.V1ConfigMapVolumeSource(
                        name=spec.artifact.name,
                        items=[
                            client.V1KeyToPath(key=key, path=path)
                            for key, path in spec.artifact.items
                        ]
                        or None,
                    ),
                ),
                client.V1Volume(
                    name=_SECRET_VOLUME,
                    secret=client.V1SecretVolumeSource(
                        secret_name=spec.secret_name,
                        items=[
                            client.V1KeyToPath(key=spec.secret_key, path=spec.secret_file)
                        ],
                    ),
                ),
            ],
        ),
    )


class PodLogStream:
    """Followed pod log, yielding decoded lines."""

    def __init__(self, response: Any, name: str) -> None:
        self._response = response
        self._name = name

    def __iter__(self) -> Iterator[str]:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = ""
        try:
            for chunk in self._response.stream(decode_content=True):
                buffer += decoder.decode(chunk)
                *lines, buffer = buffer.split("\n")
                yield from lines
        except urllib3.exceptions.HTTPError as exc:
            raise LogStreamError(f"log stream for {self._name} broke: {exc}") from exc
        buffer += decoder.decode(b"", final=True)
        if buffer:
            yield buffer

    def close(self) -> None:
        self._response.close()
        self._response.release_conn()


class KubernetesClusterAdapter:
    """Adapter around the Kubernetes CoreV1 API."""

    def __init__(self, api_client: client.ApiClient, *, container: str = "kaniko"):
        """Create a cluster adapter from a configured ApiClient."""
        self.core = client.CoreV1Api(api_client)
        self.container = container

    def read_secret_data(
        self, namespace: str, name: str, *, timeout: float | None = None
    ) -> dict[str, bytes]:
        """Return the base64-decoded data of a secret."""
        try:
            secret = self.core.read_namespaced_secret(
                name, namespace, **_request_kwargs(timeout)
            )
        except ApiException as exc:
            if exc.status == 404:
                raise CredentialNotFound(
                    f"secret {namespace}/{name} not found"
                ) from exc
            raise ClusterAPIError(
                f"failed to read secret {namespace}/{name}: {_describe(exc)}"
            ) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise ClusterAPIError(
                f"failed to read secret {namespace}/{name}: {exc}"
            ) from exc

        return {
            key: base64.b64decode(value) for key, value in (secret.data or {}).items()
        }

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
        """Create an immutable ConfigMap holding a build artifact."""
        body = client.V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=client.V1ObjectMeta(name=name, labels=dict(labels)),
            data=data or None,
            binary_data=binary_data or None,
            immutable=True,
        )
        try:
            self.core.create_namespaced_config_map(
                namespace, body, **_request_kwargs(timeout)
            )
        except _API_ERRORS as exc:
            raise SubmissionError(
                f"configmap {namespace}/{name} rejected: {_describe(exc)}"
            ) from exc

    def create_pod(self, spec: JobSpec, *, timeout: float | None = None) -> JobPhase:
        """Submit the build pod and return its initial phase."""
        try:
            pod = self.core.create_namespaced_pod(
                spec.namespace, pod_manifest(spec), **_request_kwargs(timeout)
            )
        except _API_ERRORS as exc:
            raise SubmissionError(
                f"pod {spec.namespace}/{spec.name} rejected: {_describe(exc)}"
            ) from exc
        status = getattr(pod, "status", None)
        return JobPhase.parse(getattr(status, "phase", None))

    def get_pod_phase(
        self, namespace: str, name: str, *, timeout: float | None = None
    ) -> JobPhase:
        """Return the current phase of a pod."""
        try:
            pod = self.core.read_namespaced_pod(
                name, namespace, **_request_kwargs(timeout)
            )
        except _API_ERRORS as exc:
            raise PollError(
                f"failed to read pod {namespace}/{name}: {_describe(exc)}"
            ) from exc
        status = getattr(pod, "status", None)
        return JobPhase.parse(getattr(status, "phase", None))

    def open_log_stream(
        self, namespace: str, name: str, *, timeout: float | None = None
    ) -> PodLogStream:
        """Open a followed log stream for the builder container."""
        try:
            response = self.core.read_namespaced_pod_log(
                name,
                namespace,
                container=self.container,
                follow=True,
                _preload_content=False,
                **_request_kwargs(timeout),
            )
        except _API_ERRORS as exc:
            raise LogStreamError(
                f"failed to open logs for {namespace}/{name}: {_describe(exc)}"
            ) from exc
        return PodLogStream(response, name)

    def delete_pod(self, namespace: str, name: str) -> bool:
        """Delete a pod; return False if it does not exist."""
        try:
            self.core.delete_namespaced_pod(name, namespace)
        except ApiException as exc:
            if exc.status == 404:
                return False
            raise ClusterAPIError(
                f"failed to delete pod {namespace}/{name}: {_describe(exc)}"
            ) from exc
        logger.info("Deleted pod %s/%s", namespace, name)
        return True

    def delete_config_map(self, namespace: str, name: str) -> bool:
        """Delete a ConfigMap; return False if it does not exist."""
        try:
            self.core.delete_namespaced_config_map(name, namespace)
        except ApiException as exc:
            if exc.status == 404:
                return False
            raise ClusterAPIError(
                f"failed to delete configmap {namespace}/{name}: {_describe(exc)}"
            ) from exc
        logger.info("Deleted configmap %s/%s", namespace, name)
        return True
