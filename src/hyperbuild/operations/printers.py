"""
Human-readable output formatting.

Centralizes all CLI output formatting so CLI commands stay thin.
"""
from __future__ import annotations

from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.table import Table

from ..models import Image

_console = Console()


def print_build_summary(image: Image, verbose: bool = False) -> None:
    """
    Print the result of a build.

    Args:
        image: Image that was built
        verbose: Also list every layer digest
    """
    typer.echo(f"Built {image.name} ({image.id})")
    typer.echo(f"Layers: {len(image.layers)}  Size: {_format_bytes(image.total_size)}")
    typer.echo(f"Config: {image.config.digest}")
    if verbose:
        for layer in image.layers:
            typer.echo(f"  {layer.digest}  {_format_bytes(layer.size)}")


def print_push_summary(reference: str, manifest_digest: str, layer_count: int) -> None:
    typer.echo(f"Pushed {reference}")
    typer.echo(f"Layers: {layer_count}")
    typer.echo(f"Manifest: {manifest_digest}")


def print_pull_summary(reference: str, dest: str, paths: List[Path]) -> None:
    typer.echo(f"Pulled {reference} to {dest}")
    for path in paths:
        typer.echo(f"  {path.name}")


def print_images(images: List[Image]) -> None:
    """
    Print stored images as a table.

    Args:
        images: Images to list
    """
    if not images:
        typer.echo("No images")
        return

    table = Table(title="Images")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Layers", justify="right")
    table.add_column("Size", justify="right", style="yellow")

    for image in images:
        table.add_row(image.name, image.id[:12], str(len(image.layers)),
                      _format_bytes(image.total_size))

    _console.print(table)


def print_removed(image: Image) -> None:
    typer.echo(f"Removed {image.name} ({image.id})")


def print_gc_summary(reclaimed: int) -> None:
    typer.echo(f"Reclaimed {_format_bytes(reclaimed)}")


def _format_bytes(size_bytes: int) -> str:
    """
    Format byte count as human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "42 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"
