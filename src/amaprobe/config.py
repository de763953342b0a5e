# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for amaprobe."""

import os
from dataclasses import dataclass

from .version import __version__

DEFAULT_USER_AGENT = f"amaprobe/{__version__} (Azure Monitor Agent connectivity diagnostics)"

DEFAULT_CONFIG_DIR = "/etc/opt/microsoft/azuremonitoragent/config-cache/configchunks"
DEFAULT_PROXY_CONFIG_FILE = "/etc/opt/microsoft/azuremonitoragent/proxy.conf"
DEFAULT_ARC_MARKER = "/var/opt/azcmagent/localconfig.json"
DEFAULT_CHALLENGE_DIRS = ("/var/opt/azcmagent/tokens",)


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        parsed = float(value) if value is not None else default
        return parsed if parsed > 0 else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_int_env(name: str, default: int | None) -> int | None:
    try:
        value = os.getenv(name)
        if value is None:
            return default
        parsed = int(value)
        return parsed if parsed > 0 else None
    except ValueError:
        return default


def _paths_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    paths = tuple(part.strip() for part in value.split(os.pathsep) if part.strip())
    return paths or default


@dataclass
class ProbeSettings:
    """Diagnostic engine defaults: locations, per-operation timeouts, pool sizing, HTTP behavior."""

    config_dir: str = DEFAULT_CONFIG_DIR
    proxy_config_file: str = DEFAULT_PROXY_CONFIG_FILE
    dns_timeout: float = 10.0
    tls_timeout: float = 10.0
    http_timeout: float = 30.0
    metadata_timeout: float = 10.0
    worker_multiplier: int = 4
    max_workers: int | None = None
    user_agent: str = DEFAULT_USER_AGENT
    verify_ssl: bool = True
    max_body_bytes: int = 1024 * 1024
    unexpected_counts_as_failure: bool = False
    arc_marker_path: str = DEFAULT_ARC_MARKER
    challenge_dirs: tuple[str, ...] = DEFAULT_CHALLENGE_DIRS

    @classmethod
    def from_env(cls) -> "ProbeSettings":
        """Create settings from environment variables (evaluated at call time)."""
        max_body_bytes = _int_env("AMAPROBE_HTTP_MAX_BODY_BYTES", cls.max_body_bytes)
        if max_body_bytes <= 0:
            max_body_bytes = cls.max_body_bytes
        worker_multiplier = _int_env("AMAPROBE_WORKER_MULTIPLIER", cls.worker_multiplier)
        if worker_multiplier <= 0:
            worker_multiplier = cls.worker_multiplier
        return cls(
            config_dir=os.getenv("AMAPROBE_CONFIG_DIR", cls.config_dir),
            proxy_config_file=os.getenv("AMAPROBE_PROXY_CONFIG_FILE", cls.proxy_config_file),
            dns_timeout=_float_env("AMAPROBE_DNS_TIMEOUT", cls.dns_timeout),
            tls_timeout=_float_env("AMAPROBE_TLS_TIMEOUT", cls.tls_timeout),
            http_timeout=_float_env("AMAPROBE_HTTP_TIMEOUT", cls.http_timeout),
            metadata_timeout=_float_env("AMAPROBE_METADATA_TIMEOUT", cls.metadata_timeout),
            worker_multiplier=worker_multiplier,
            max_workers=_optional_int_env("AMAPROBE_MAX_WORKERS", cls.max_workers),
            user_agent=os.getenv("AMAPROBE_USER_AGENT", cls.user_agent),
            verify_ssl=_bool_env("AMAPROBE_HTTP_VERIFY_SSL", cls.verify_ssl),
            max_body_bytes=max_body_bytes,
            unexpected_counts_as_failure=_bool_env("AMAPROBE_UNEXPECTED_IS_FAILURE", cls.unexpected_counts_as_failure),
            arc_marker_path=os.getenv("AMAPROBE_ARC_MARKER", cls.arc_marker_path),
            challenge_dirs=_paths_env("AMAPROBE_CHALLENGE_DIRS", DEFAULT_CHALLENGE_DIRS),
        )

    def worker_count(self) -> int:
        """Pool bound: explicit max_workers, else cpu_count times a small multiplier."""
        if self.max_workers:
            return self.max_workers
        return max(1, (os.cpu_count() or 1) * self.worker_multiplier)


def load_probe_settings() -> ProbeSettings:
    """Load probe settings from environment with sensible defaults."""
    return ProbeSettings.from_env()
