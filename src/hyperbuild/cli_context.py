"""
CLI Context for managing application dependencies.

Holds the settings and the Operations facade for one CLI invocation, so
commands get their dependencies without global state.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from .operations import Operations, OpsConfig
from .settings import Settings, create_settings_from_env


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Settings are loaded once per invocation; the Operations facade is created
    on first use.
    """
    settings: Settings
    config: OpsConfig
    _ops: Optional[Operations] = None

    @classmethod
    def from_env(cls, store_dir: Optional[str] = None, verbose: bool = False) -> CLIContext:
        """
        Create CLI context from environment variables.

        Args:
            store_dir: Overrides HYPERBUILD_STORE_DIR when given
            verbose: Show detailed output

        Returns:
            CLIContext with settings loaded from environment
        """
        settings = create_settings_from_env()
        if store_dir:
            settings = replace(settings, store_dir=store_dir)
        return cls(settings=settings, config=OpsConfig(verbose=verbose))

    @property
    def ops(self) -> Operations:
        """Get or create the Operations facade (lazy initialization)."""
        if self._ops is None:
            self._ops = Operations(config=self.config, settings=self.settings)
        return self._ops
