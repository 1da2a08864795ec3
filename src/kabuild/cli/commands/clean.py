"""Command for deleting the resources of a finished build."""

import typer

from kabuild.cli.common.context import build_cluster_context
from kabuild.cli.common.exits import exit_from_exc, ok_exit
from kabuild.cli.common.options import (
    ArtifactNameOpt,
    ConfirmOpt,
    ContextOpt,
    KubeconfigOpt,
    NamespaceOpt,
)
from kabuild.cli.common.output import out
from kabuild.core.cleanup import teardown
from kabuild.core.config import load_settings
from kabuild.core.errors import ConfigError


def clean(
    job_name: str = typer.Argument(..., help="Name of the build pod"),
    artifact_name: str | None = ArtifactNameOpt,
    namespace: str | None = NamespaceOpt,
    context: str | None = ContextOpt,
    kubeconfig: str | None = KubeconfigOpt,
    confirm: bool = ConfirmOpt,
):
    """
    Delete a build pod and its staged artifact.
    """
    try:
        settings = load_settings(namespace=namespace, artifact_name=artifact_name)
    except ConfigError as exc:
        exit_from_exc(exc, message=str(exc))

    artifact = settings.artifact_name or job_name
    out.kv({"namespace": settings.namespace, "pod": job_name, "artifact": artifact})

    if confirm and not out.confirm("Delete these resources?"):
        ok_exit("Cancelled")

    appctx = build_cluster_context(context, kubeconfig)

    with out.status("Deleting resources..."):
        results = teardown(appctx.adapter, settings.namespace, job_name, artifact)

    out.teardown_table(results)

    if any(r.error for r in results):
        raise typer.Exit(1)
