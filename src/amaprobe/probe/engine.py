# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Layered connectivity probe: DNS, then TLS, then an HTTP health check.

Each stage short-circuits on failure, and every outcome is returned as a ProbeResult;
nothing here raises for a per-target failure.
"""

from __future__ import annotations

import logging
import ssl

from ..cancel import CancelToken
from ..config import ProbeSettings, load_probe_settings
from ..errors import ErrorCategory, categorize_exception, error_category_to_reason
from ..http.client import HttpClient
from ..http.models import HttpRequest
from ..models.endpoints import ProbeRole, ProbeTarget
from ..models.probe import ProbeOutcome, ProbeResult, ProbeStage
from ..proxy import ProxyConfig
from .dns import Resolver, SystemResolver
from .tls import SystemTlsConnector, TlsConnector

logger = logging.getLogger(__name__)

HEALTH_CHECK_PATH = "/ping"
HEALTHY_BODY = "Healthy"
INSTANCE_METADATA_PATH = "/metadata/instance/compute?api-version=2020-06-01"


class ProbeEngine:
    """Runs the layered probe for one target at a time; safe to share across worker threads."""

    def __init__(
        self,
        http_client: HttpClient,
        *,
        proxy: ProxyConfig | None = None,
        settings: ProbeSettings | None = None,
        resolver: Resolver | None = None,
        tls_connector: TlsConnector | None = None,
        metadata_client: HttpClient | None = None,
    ):
        self.settings = settings or load_probe_settings()
        self.http_client = http_client
        self.metadata_client = metadata_client
        self.proxy = proxy or ProxyConfig()
        self.resolver = resolver or SystemResolver()
        self.tls_connector = tls_connector or SystemTlsConnector()

    def probe(self, target: ProbeTarget, cancel: CancelToken | None = None) -> ProbeResult:
        cancel = cancel or CancelToken()
        stages: list[ProbeStage] = []

        def result(stage: ProbeStage, outcome: ProbeOutcome, detail: str, category: ErrorCategory | None = None) -> ProbeResult:
            return ProbeResult(target, stage, outcome, detail, category, tuple(stages))

        def cancelled(stage: ProbeStage) -> ProbeResult:
            return result(stage, ProbeOutcome.FAIL, error_category_to_reason(ErrorCategory.CANCELLED), ErrorCategory.CANCELLED)

        if cancel.is_set():
            return cancelled(ProbeStage.DNS)

        stages.append(ProbeStage.DNS)
        logger.info("Testing DNS resolution for %s", target.host)
        try:
            addresses = self.resolver.resolve(target.host, cancel.bound(self.settings.dns_timeout))
        except OSError as exc:
            category = categorize_exception(exc)
            logger.warning("DNS resolution failed for %s: %s", target.host, exc)
            return result(ProbeStage.DNS, ProbeOutcome.FAIL, f"{error_category_to_reason(category)}: {exc}", category)
        logger.debug("%s resolved to %s", target.host, ", ".join(addresses))

        last_stage = ProbeStage.DNS
        warning: str | None = None
        warning_category: ErrorCategory | None = None

        if self.proxy.requires_auth:
            logger.info("Skipping TLS test for %s due to authenticated proxy", target.host)
        else:
            if cancel.is_set():
                return cancelled(ProbeStage.TLS)
            stages.append(ProbeStage.TLS)
            last_stage = ProbeStage.TLS
            proxy_endpoint = self.proxy.host_port() if self.proxy.configured else None
            if self.proxy.configured and proxy_endpoint is None:
                detail = f"{error_category_to_reason(ErrorCategory.PROXY_ERROR)}: unusable proxy address {self.proxy.display()}"
                logger.warning("TLS test for %s not attempted: %s", target.host, detail)
                return result(ProbeStage.TLS, ProbeOutcome.FAIL, detail, ErrorCategory.PROXY_ERROR)
            try:
                handshake = self.tls_connector.handshake(
                    target.host,
                    target.port,
                    cancel.bound(self.settings.tls_timeout),
                    proxy_endpoint,
                )
            except (OSError, ssl.SSLError) as exc:
                category = categorize_exception(exc)
                logger.warning("TLS connection failed for %s: %s", target.host, exc)
                return result(ProbeStage.TLS, ProbeOutcome.FAIL, f"{error_category_to_reason(category)}: {exc}", category)
            if not handshake.verified:
                warning = f"TLS connection established but verification failed: {handshake.verify_error}"
                warning_category = ErrorCategory.CERT_VERIFY_ERROR
                logger.warning("%s for %s", warning, target.host)

        if not target.role.has_health_check:
            if warning:
                return result(last_stage, ProbeOutcome.WARN, warning, warning_category)
            return result(last_stage, ProbeOutcome.PASS, "Connectivity test passed")

        if cancel.is_set():
            return cancelled(ProbeStage.HTTP)
        stages.append(ProbeStage.HTTP)
        ping_url = f"{target.base_url}{HEALTH_CHECK_PATH}"
        logger.info("Testing HTTP ping: %s", ping_url)
        response = self.http_client.request(
            HttpRequest(url=ping_url, method="GET", timeout=cancel.bound(self.settings.http_timeout))
        )
        if response.transport_failed:
            category = response.category or ErrorCategory.UNKNOWN_ERROR
            detail = f"{error_category_to_reason(category)}: {response.error_message or 'no response'}"
            logger.warning("HTTP ping failed for %s: %s", target.host, detail)
            return result(ProbeStage.HTTP, ProbeOutcome.FAIL, detail, category)

        body = response.text.strip()
        if response.status_code // 100 == 2 and body == HEALTHY_BODY:
            if warning:
                return result(ProbeStage.HTTP, ProbeOutcome.WARN, warning, warning_category)
            return result(ProbeStage.HTTP, ProbeOutcome.PASS, f"HTTP ping successful (Response: {body})")
        detail = f"HTTP ping returned unexpected response (HTTP {response.status_code}: {body[:120]!r})"
        logger.warning("%s for %s", detail, target.host)
        return result(ProbeStage.HTTP, ProbeOutcome.WARN, detail)

    def probe_instance_metadata(self, target: ProbeTarget, cancel: CancelToken | None = None) -> ProbeResult:
        """Query the instance metadata service (never through a proxy)."""
        cancel = cancel or CancelToken()
        client = self.metadata_client or self.http_client
        stages = (ProbeStage.HTTP,)
        if cancel.is_set():
            return ProbeResult(target, ProbeStage.HTTP, ProbeOutcome.FAIL, "Cancelled", ErrorCategory.CANCELLED, ())

        url = f"{target.base_url}{INSTANCE_METADATA_PATH}"
        logger.info("Testing IMDS metadata endpoint: %s", url)
        response = client.request(
            HttpRequest(
                url=url,
                method="GET",
                headers={"Metadata": "true"},
                timeout=cancel.bound(self.settings.metadata_timeout),
            )
        )
        if response.transport_failed:
            category = response.category or ErrorCategory.UNKNOWN_ERROR
            detail = f"IMDS metadata endpoint failed: {response.error_message or error_category_to_reason(category)}"
            return ProbeResult(target, ProbeStage.HTTP, ProbeOutcome.FAIL, detail, category, stages)

        payload = response.json()
        if isinstance(payload, dict) and payload.get("location") and payload.get("resourceId"):
            detail = f"IMDS metadata endpoint accessible (location={payload['location']})"
            return ProbeResult(target, ProbeStage.HTTP, ProbeOutcome.PASS, detail, None, stages)
        detail = f"IMDS metadata responded but data incomplete (HTTP {response.status_code})"
        return ProbeResult(target, ProbeStage.HTTP, ProbeOutcome.WARN, detail, None, stages)


def metadata_probe_target(host: str, port: int) -> ProbeTarget:
    return ProbeTarget(host=host, role=ProbeRole.INSTANCE_METADATA, port=port, scheme="http")


__all__ = ["HEALTH_CHECK_PATH", "HEALTHY_BODY", "ProbeEngine", "metadata_probe_target"]
