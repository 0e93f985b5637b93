"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

import typer

T = TypeVar('T')

logger = logging.getLogger(__name__)

# Checked against the exception's class and its bases, most specific first
EXIT_CODES = {
    "NotFound": 1,
    "FileNotFoundError": 1,
    "InvalidReference": 2,
    "ValidationError": 2,
    "ValueError": 2,
    "NetworkError": 3,
    "Corrupt": 4,
    "SerializationError": 5,
    "StoreIOError": 6,
}


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns:
    - 1: Image, blob or Dockerfile not found (NotFound, FileNotFoundError)
    - 2: Invalid input (InvalidReference, ValidationError, ValueError)
    - 3: Registry/network error (NetworkError) or unknown error
    - 4: Content failed digest verification (Corrupt)
    - 5: Malformed manifest or config (SerializationError)
    - 6: Store filesystem failure (StoreIOError)

    Args:
        exc: Exception to map

    Returns:
        Exit code (1-6, with 3 as fallback for unknown exceptions)
    """
    for cls in type(exc).__mro__:
        code = EXIT_CODES.get(cls.__name__)
        if code is not None:
            return code
    return 3


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exception to an exit code via
    typer.Exit, printing the error to stderr first. This keeps try/except
    blocks out of individual CLI commands.

    Args:
        func: Function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except typer.Exit:
        raise
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=exit_code_for(e)) from e
