# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Dataclass exports for amaprobe."""

from .auth import (
    AccessToken,
    AuthClassification,
    AuthFailureReason,
    AuthMethod,
    AuthOutcome,
    IdentityKind,
    IdentitySelector,
    IngestionTarget,
    ManagedIdentityCredentials,
    SharedKeyCredentials,
)
from .endpoints import CloudSuffix, EndpointSet, ProbeRole, ProbeTarget
from .probe import ProbeOutcome, ProbeResult, ProbeStage
from .report import ConfigurationSummary, CountingPolicy, Report
from .routing import (
    AgentSettingsMap,
    ChannelProtocol,
    ConfigurationLoad,
    MalformedFile,
    RecordKind,
    RoutingRecord,
)

__all__ = [
    "AccessToken",
    "AgentSettingsMap",
    "AuthClassification",
    "AuthFailureReason",
    "AuthMethod",
    "AuthOutcome",
    "ChannelProtocol",
    "CloudSuffix",
    "ConfigurationLoad",
    "ConfigurationSummary",
    "CountingPolicy",
    "EndpointSet",
    "IdentityKind",
    "IdentitySelector",
    "IngestionTarget",
    "MalformedFile",
    "ManagedIdentityCredentials",
    "ProbeOutcome",
    "ProbeResult",
    "ProbeRole",
    "ProbeStage",
    "ProbeTarget",
    "RecordKind",
    "Report",
    "RoutingRecord",
    "SharedKeyCredentials",
]
