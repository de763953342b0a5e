# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Layered network probes."""

from .dns import Resolver, SystemResolver
from .engine import HEALTH_CHECK_PATH, HEALTHY_BODY, ProbeEngine, metadata_probe_target
from .runner import run_probes
from .tls import ProxyTunnelError, SystemTlsConnector, TlsConnector, TlsHandshake, open_tunnel

__all__ = [
    "HEALTH_CHECK_PATH",
    "HEALTHY_BODY",
    "ProbeEngine",
    "ProxyTunnelError",
    "Resolver",
    "SystemResolver",
    "SystemTlsConnector",
    "TlsConnector",
    "TlsHandshake",
    "metadata_probe_target",
    "open_tunnel",
    "run_probes",
]
