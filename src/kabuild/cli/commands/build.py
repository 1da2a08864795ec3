"""Command for building and pushing an image on the cluster."""

from typing import Callable

from kabuild.cli.common.context import ClusterAppContext, build_cluster_context
from kabuild.cli.common.exits import die, exit_from_exc
from kabuild.cli.common.options import (
    ArtifactNameOpt,
    CleanupOpt,
    ContextOpt,
    DirOpt,
    KubeconfigOpt,
    NamespaceOpt,
    PollIntervalOpt,
    RegistryOpt,
    RepoOpt,
    TagOpt,
    TimeoutOpt,
)
from kabuild.cli.common.output import out
from kabuild.core.build import BuildPlan, execute_build, outcome_succeeded, plan_build
from kabuild.core.cancel import CancelToken
from kabuild.core.cleanup import teardown
from kabuild.core.config import load_settings
from kabuild.core.errors import BuildError, ConfigError, UnknownTerminalPhase
from kabuild.core.jobs import BuildRequest, JobPhase


def _phase_reporter(job_name: str) -> Callable[[JobPhase], None]:
    """Return an on_phase callback printing pod progress."""

    def _report(phase: JobPhase) -> None:
        if phase == JobPhase.PENDING:
            out.info(f"Waiting for pod {job_name} to start...")
        elif phase == JobPhase.RUNNING:
            out.info(f"Pod {job_name} is running...")
            out.header(f"Logs for {job_name}:")
        elif phase == JobPhase.UNKNOWN:
            out.warn(f"Pod {job_name} state is unknown, still waiting...")

    return _report


def _teardown(appctx: ClusterAppContext, plan: BuildPlan) -> None:
    results = teardown(appctx.adapter, plan.namespace, plan.job_name, plan.artifact_name)
    out.teardown_table(results, title="Cleanup")


def build(
    repo: str = RepoOpt,
    tag: str | None = TagOpt,
    directory: str = DirOpt,
    namespace: str | None = NamespaceOpt,
    context: str | None = ContextOpt,
    kubeconfig: str | None = KubeconfigOpt,
    poll_interval: float | None = PollIntervalOpt,
    timeout: float | None = TimeoutOpt,
    artifact_name: str | None = ArtifactNameOpt,
    registry: list[str] = RegistryOpt,
    cleanup: bool = CleanupOpt,
):
    """
    Build an image from a directory with Kaniko and push it to the registry.
    """
    try:
        request = BuildRequest.create(repo, tag)
    except ValueError as e:
        die(str(e), code=1)

    try:
        settings = load_settings(
            namespace=namespace,
            poll_interval=poll_interval,
            artifact_name=artifact_name,
            registries=tuple(registry) or None,
        )
    except ConfigError as exc:
        exit_from_exc(exc, message=str(exc))

    appctx = build_cluster_context(context, kubeconfig)
    out.info(f"Using Kubernetes context: {appctx.context_name or 'in-cluster'}")

    plan = plan_build(request, settings)
    out.kv(
        {
            "namespace": plan.namespace,
            "pod": plan.job_name,
            "artifact": plan.artifact_name,
            "directory": directory,
        }
    )

    cancel = CancelToken(timeout)
    try:
        result = execute_build(
            appctx.adapter,
            plan,
            settings,
            directory,
            cancel=cancel,
            on_log=out.log_line,
            on_phase=_phase_reporter(plan.job_name),
        )
    except BuildError as exc:
        exit_from_exc(exc, message=f"Error occurred while building: {exc}")
    except KeyboardInterrupt as exc:
        cancel.cancel()
        exit_from_exc(exc, message="Interrupted", code=130)
    finally:
        if cleanup:
            _teardown(appctx, plan)

    try:
        succeeded = outcome_succeeded(result.phase)
    except UnknownTerminalPhase as exc:
        exit_from_exc(exc, message=str(exc))

    if not succeeded:
        die("Build failed.", code=1)

    out.success("Build uploaded successfully.")
    out.kv({"image": result.destination})
