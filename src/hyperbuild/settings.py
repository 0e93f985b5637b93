"""
Settings and configuration for hyperbuild.

Centralizes configuration values and validates them with fail-fast behavior.
Settings are read from environment variables when the CLI context is built;
nothing is cached between calls.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass

from .storage.oci_media_types import DEFAULT_REGISTRY

__all__ = ["Settings", "create_settings_from_env"]


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for hyperbuild.

    Store:
        store_dir: Root directory of the blob and image stores

    Registry:
        default_registry: Registry used for references that name no host
        http_timeout_s: Per-request HTTP timeout in seconds
        http_retry: Extra attempts for transport failures (0=no retry)
        http_backoff_s: Exponential backoff multiplier between retries
        verify_pulled_blobs: Check pulled blobs against their manifest digests
    """
    store_dir: str = "./build-output"
    default_registry: str = DEFAULT_REGISTRY
    http_timeout_s: float = 30.0
    http_retry: int = 0
    http_backoff_s: float = 0.5
    verify_pulled_blobs: bool = False

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.store_dir:
            raise ValueError("store_dir is required")

        # Registry must be a scheme-qualified URL: https://host[:port]
        url_pattern = r"^https?://[a-zA-Z0-9.-]+(?::[0-9]+)?(?:/.*)?$"
        if not re.match(url_pattern, self.default_registry):
            raise ValueError(f"Invalid default_registry format: {self.default_registry}")

        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        if self.http_retry < 0:
            raise ValueError(f"http_retry must be non-negative, got {self.http_retry}")

        if self.http_backoff_s < 0:
            raise ValueError(f"http_backoff_s must be non-negative, got {self.http_backoff_s}")


# Settings loading functions (no caching)


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - HYPERBUILD_STORE_DIR (default: ./build-output)
        - HYPERBUILD_DEFAULT_REGISTRY (default: https://registry-1.docker.io)
        - HYPERBUILD_HTTP_TIMEOUT (default: 30.0)
        - HYPERBUILD_HTTP_RETRY (default: 0)
        - HYPERBUILD_HTTP_BACKOFF (default: 0.5)
        - HYPERBUILD_VERIFY_PULL (default: false)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    def str_to_bool(value: str) -> bool:
        return value.lower() in ('true', '1', 'yes', 'on')

    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        return float(value) if value else default

    def get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        return int(value) if value else default

    return Settings(
        store_dir=os.getenv("HYPERBUILD_STORE_DIR") or "./build-output",
        default_registry=os.getenv("HYPERBUILD_DEFAULT_REGISTRY") or DEFAULT_REGISTRY,
        http_timeout_s=get_float("HYPERBUILD_HTTP_TIMEOUT", 30.0),
        http_retry=get_int("HYPERBUILD_HTTP_RETRY", 0),
        http_backoff_s=get_float("HYPERBUILD_HTTP_BACKOFF", 0.5),
        verify_pulled_blobs=str_to_bool(os.getenv("HYPERBUILD_VERIFY_PULL", "false")),
    )
