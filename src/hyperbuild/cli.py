"""
hyperbuild CLI

Implements 6 CLI verbs with Operations facade integration:
- build: Build an image from a Dockerfile into the local store
- push: Push a stored image to its registry (optionally building it first)
- pull: Download an image's layers and config into a directory
- images: List stored images
- rmi: Remove a stored image record
- gc: Reclaim unreferenced blobs
"""
from __future__ import annotations

import logging
from typing import Optional

import typer

from .cli_context import CLIContext
from .operations import run_and_exit
from .operations.printers import (
    print_build_summary, print_gc_summary, print_images, print_pull_summary,
    print_push_summary, print_removed,
)

app = typer.Typer(name="hyperbuild", help="Build, store, push and pull container images")


@app.callback()
def main_callback(
    ctx: typer.Context,
    store_dir: Optional[str] = typer.Option(
        None, "--store-dir", help="Store root (default: $HYPERBUILD_STORE_DIR or ./build-output)"
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="-v for INFO, -vv for DEBUG"),
) -> None:
    """Build, store, push and pull container images."""
    _configure_logging(verbose)

    def _context() -> CLIContext:
        return CLIContext.from_env(store_dir=store_dir, verbose=verbose > 0)

    ctx.obj = run_and_exit(_context)


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)


@app.command()
def build(
    ctx: typer.Context,
    dockerfile: str = typer.Argument(..., help="Path to the Dockerfile"),
    name: str = typer.Argument(..., help="Image name, e.g. localhost:5000/app:v1"),
) -> None:
    """Build an image from a Dockerfile."""
    context: CLIContext = ctx.obj

    def _build() -> None:
        image = context.ops.build(dockerfile, name)
        print_build_summary(image, verbose=context.config.verbose)

    run_and_exit(_build)


@app.command()
def push(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Image name to push"),
    dockerfile: Optional[str] = typer.Option(
        None, "--dockerfile", "-f", help="Build from this Dockerfile if the image is not stored"
    ),
) -> None:
    """Push an image to its registry."""
    context: CLIContext = ctx.obj

    def _push() -> None:
        result = context.ops.push(name, dockerfile=dockerfile)
        print_push_summary(str(result.reference), result.manifest_digest, len(result.image.layers))

    run_and_exit(_push)


@app.command()
def pull(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Image reference to pull"),
    dest: str = typer.Argument(..., help="Output directory"),
) -> None:
    """Download an image's layers and config into a directory."""
    context: CLIContext = ctx.obj

    def _pull() -> None:
        paths = context.ops.pull(name, dest)
        print_pull_summary(name, dest, paths)

    run_and_exit(_pull)


@app.command()
def images(ctx: typer.Context) -> None:
    """List stored images."""
    context: CLIContext = ctx.obj
    run_and_exit(lambda: print_images(context.ops.images()))


@app.command()
def rmi(
    ctx: typer.Context,
    name_or_id: str = typer.Argument(..., help="Image name or id"),
) -> None:
    """Remove a stored image."""
    context: CLIContext = ctx.obj
    run_and_exit(lambda: print_removed(context.ops.remove(name_or_id)))


@app.command()
def gc(ctx: typer.Context) -> None:
    """Reclaim blobs no image references."""
    context: CLIContext = ctx.obj
    run_and_exit(lambda: print_gc_summary(context.ops.gc()))


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
