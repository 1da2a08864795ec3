"""Common CLI options for the CLI."""

import typer

RepoOpt = typer.Option(
    ...,
    "--repo",
    "-r",
    help="Image repository to build and push",
)

TagOpt = typer.Option(
    None,
    "--tag",
    "-t",
    help="Image tag (default: latest)",
)

DirOpt = typer.Option(
    ".",
    "--dir",
    "-d",
    help="Build directory staged as the build context",
)

NamespaceOpt = typer.Option(
    None,
    "--namespace",
    "-n",
    help="Kubernetes namespace (default: $KABUILD_NAMESPACE or 'default')",
)

ContextOpt = typer.Option(
    None,
    "--context",
    help="kubeconfig context to use (default: current context)",
)

KubeconfigOpt = typer.Option(
    None,
    "--kubeconfig",
    help="Path to a kubeconfig file",
)

PollIntervalOpt = typer.Option(
    None,
    "--poll-interval",
    help="Seconds between pod status checks (default: 10)",
)

TimeoutOpt = typer.Option(
    None,
    "--timeout",
    help="Give up after this many seconds (default: wait forever)",
)

ArtifactNameOpt = typer.Option(
    None,
    "--artifact-name",
    help="Fixed name for the staged ConfigMap (default: the pod name)",
)

RegistryOpt = typer.Option(
    [],
    "--registry",
    help="Registry whose username prefixes the image. This is reusable.",
    show_default=False,
)

CleanupOpt = typer.Option(
    False,
    "--cleanup/--no-cleanup",
    help="Delete the pod and its artifact once the build ends",
)

ConfirmOpt = typer.Option(
    True,
    "--confirm/--no-confirm",
    help="Ask for confirmation before deleting resources",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Show debug logging",
)
