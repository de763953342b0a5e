# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Endpoint set and probe target models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CloudSuffix(str, Enum):
    PUBLIC = ".com"
    GOVERNMENT = ".us"
    CHINA = ".cn"

    @property
    def is_sovereign(self) -> bool:
        return self is not CloudSuffix.PUBLIC


class ProbeRole(str, Enum):
    GLOBAL_HANDLER = "GlobalHandler"
    REGIONAL_HANDLER = "RegionalHandler"
    LOG_ANALYTICS = "LogAnalytics"
    MANAGEMENT = "Management"
    METRICS = "Metrics"
    INSTANCE_METADATA = "InstanceMetadata"

    @property
    def has_health_check(self) -> bool:
        return self in {ProbeRole.GLOBAL_HANDLER, ProbeRole.REGIONAL_HANDLER, ProbeRole.MANAGEMENT}


_ROLE_LABELS = {
    ProbeRole.GLOBAL_HANDLER: "Global Handler",
    ProbeRole.REGIONAL_HANDLER: "Regional Handler",
    ProbeRole.LOG_ANALYTICS: "Log Analytics",
    ProbeRole.MANAGEMENT: "Management",
    ProbeRole.METRICS: "Metrics",
    ProbeRole.INSTANCE_METADATA: "Instance Metadata",
}


@dataclass(frozen=True)
class EndpointSet:
    """Deduplicated identifiers derived from routing records."""

    workspace_ids: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    metrics_regions: tuple[str, ...] = ()
    cloud_suffix: CloudSuffix = CloudSuffix.PUBLIC


@dataclass(frozen=True)
class ProbeTarget:
    host: str
    role: ProbeRole
    qualifier: str | None = None
    port: int = 443
    scheme: str = "https"

    @property
    def display_name(self) -> str:
        label = _ROLE_LABELS.get(self.role, self.role.value)
        return f"{label} ({self.qualifier})" if self.qualifier else label

    @property
    def base_url(self) -> str:
        default_port = 443 if self.scheme == "https" else 80
        netloc = self.host if self.port == default_port else f"{self.host}:{self.port}"
        return f"{self.scheme}://{netloc}"
