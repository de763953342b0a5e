# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Dataclasses for the run-level diagnostic report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .auth import AuthOutcome
from .endpoints import CloudSuffix
from .probe import ProbeResult


@dataclass(frozen=True)
class CountingPolicy:
    """How soft outcomes are counted; unexpected statuses pass unless told otherwise."""

    unexpected_counts_as_failure: bool = False


@dataclass(frozen=True)
class ConfigurationSummary:
    workspace_count: int = 0
    region_count: int = 0
    metrics_region_count: int = 0
    cloud_suffix: CloudSuffix = CloudSuffix.PUBLIC
    proxy_configured: bool = False
    workspace_ids: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    metrics_regions: tuple[str, ...] = ()
    proxy_address: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "workspace_count": self.workspace_count,
            "region_count": self.region_count,
            "metrics_region_count": self.metrics_region_count,
            "cloud_suffix": self.cloud_suffix.value,
            "proxy_configured": self.proxy_configured,
            "workspace_ids": list(self.workspace_ids),
            "regions": list(self.regions),
            "metrics_regions": list(self.metrics_regions),
            "proxy_address": self.proxy_address,
        }


@dataclass(frozen=True)
class Report:
    total: int
    passed: int
    failed: int
    warned: int = 0
    unexpected: int = 0
    cancelled: bool = False
    configuration: ConfigurationSummary = field(default_factory=ConfigurationSummary)
    probe_results: tuple[ProbeResult, ...] = ()
    auth_outcomes: tuple[AuthOutcome, ...] = ()

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.cancelled

    def exit_code(self) -> int:
        return 0 if self.success else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "warned": self.warned,
            "unexpected": self.unexpected,
            "cancelled": self.cancelled,
            "success": self.success,
            "configuration": self.configuration.to_dict(),
            "probes": [result.to_dict() for result in self.probe_results],
            "authentication": [outcome.to_dict() for outcome in self.auth_outcomes],
        }
