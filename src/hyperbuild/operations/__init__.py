"""
Operations package - application service layer between CLI and the stores.

This package provides the Operations facade that orchestrates CLI commands,
centralizes error mapping, and handles output formatting while keeping
CLI commands thin and testable.
"""
from .facade import Operations, OpsConfig, PushResult
from .mappers import exit_code_for, run_and_exit

__all__ = ["Operations", "OpsConfig", "PushResult", "exit_code_for", "run_and_exit"]
