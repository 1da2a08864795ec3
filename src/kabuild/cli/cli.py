"""CLI application for building container images on Kubernetes."""

import typer

from kabuild.cli.commands.build import build
from kabuild.cli.commands.clean import clean
from kabuild.cli.common.logs import configure_logging
from kabuild.cli.common.options import VerboseOpt

app = typer.Typer(
    help="kabuild - build ⚒️ images on Kubernetes and push them to your registry",
    no_args_is_help=True,
)


@app.callback()
def _init(verbose: bool = VerboseOpt):
    """Configure logging once per invocation."""
    configure_logging(verbose)


app.command(help="Build an image with Kaniko and push it.")(build)
app.command(help="Delete a build pod and its artifact.")(clean)


if __name__ == "__main__":
    app()
