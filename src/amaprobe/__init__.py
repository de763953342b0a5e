# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
amaprobe package entrypoint.

This package diagnoses Azure Monitor Agent connectivity: it reads the agent's data
collection rule cache, derives the control-plane and ingestion endpoints it needs,
probes each one through DNS, TLS and an HTTP health check, and validates ingestion
authentication with a shared key or a managed identity token. Network capabilities
are injectable, and results are modeled with typed dataclasses.
"""

from .auth import AuthenticationValidator
from .cancel import CancelToken
from .config import ProbeSettings, load_probe_settings
from .dcr import read_configuration, resolve_endpoints
from .errors import (
    AmaProbeError,
    AuthenticationFailed,
    Cancelled,
    ConfigurationMalformed,
    ConfigurationUnavailable,
    NoWorkspacesFound,
    ProbeFailure,
)
from .http import HttpClient, HttpRequest, HttpResponse, HttpxClient, create_default_http_client
from .log import setup_logging
from .models import (
    AuthClassification,
    AuthMethod,
    AuthOutcome,
    EndpointSet,
    IngestionTarget,
    ManagedIdentityCredentials,
    ProbeOutcome,
    ProbeResult,
    Report,
    SharedKeyCredentials,
)
from .probe import ProbeEngine
from .proxy import ProxyConfig, resolve_proxy
from .report import render_report, summarize
from .runtime import ConnectivityDiagnostics
from .version import __version__

__all__ = [
    "AmaProbeError",
    "AuthClassification",
    "AuthMethod",
    "AuthOutcome",
    "AuthenticationFailed",
    "AuthenticationValidator",
    "CancelToken",
    "Cancelled",
    "ConfigurationMalformed",
    "ConfigurationUnavailable",
    "ConnectivityDiagnostics",
    "EndpointSet",
    "HttpClient",
    "HttpRequest",
    "HttpResponse",
    "HttpxClient",
    "IngestionTarget",
    "ManagedIdentityCredentials",
    "NoWorkspacesFound",
    "ProbeEngine",
    "ProbeFailure",
    "ProbeOutcome",
    "ProbeResult",
    "ProbeSettings",
    "ProxyConfig",
    "Report",
    "SharedKeyCredentials",
    "create_default_http_client",
    "load_probe_settings",
    "render_report",
    "resolve_endpoints",
    "resolve_proxy",
    "read_configuration",
    "setup_logging",
    "summarize",
    "__version__",
]
