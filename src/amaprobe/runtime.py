# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""High-level facade wiring configuration, probes, authentication and reporting."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from contextlib import suppress
from pathlib import Path
from typing import Any

from .auth.environment import HostEnvironment, detect_environment, metadata_endpoint
from .auth.payload import Payload
from .auth.validator import AuthenticationValidator
from .cancel import CancelToken
from .config import ProbeSettings, load_probe_settings
from .dcr.reader import read_configuration
from .dcr.resolver import build_probe_targets, resolve_endpoints
from .http.client import HttpClient, create_default_http_client
from .models import (
    AgentSettingsMap,
    AuthMethod,
    AuthOutcome,
    ConfigurationLoad,
    CountingPolicy,
    EndpointSet,
    IdentitySelector,
    IngestionTarget,
    ManagedIdentityCredentials,
    ProbeResult,
    Report,
    SharedKeyCredentials,
)
from .probe.dns import Resolver
from .probe.engine import ProbeEngine, metadata_probe_target
from .probe.runner import ResultCallback
from .probe.runner import run_probes as run_probe_pool
from .probe.tls import TlsConnector
from .proxy import ProxyConfig, resolve_proxy
from .report import ReportAggregator, summarize

logger = logging.getLogger(__name__)

MANAGED_IDENTITY_SETTING = "MANAGED_IDENTITY"


class ConnectivityDiagnostics:
    """
    Caller-facing engine: load configuration, probe endpoints, validate authentication,
    and summarize.

    HTTP clients are created per proxy and owned by this object unless injected. Health
    checks run without certificate verification because the TLS stage already reports
    trust problems; ingestion calls verify per settings; metadata calls never use a proxy.
    """

    def __init__(
        self,
        settings: ProbeSettings | None = None,
        *,
        http_client: HttpClient | None = None,
        metadata_client: HttpClient | None = None,
        resolver: Resolver | None = None,
        tls_connector: TlsConnector | None = None,
        environment: HostEnvironment | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.settings = settings or load_probe_settings()
        self.policy = CountingPolicy(unexpected_counts_as_failure=self.settings.unexpected_counts_as_failure)
        self.resolver = resolver
        self.tls_connector = tls_connector
        self.environ = environ
        self._injected_client = http_client
        self._metadata_client = metadata_client
        self._environment = environment
        self._owned_clients: list[HttpClient] = []
        self._clients: dict[tuple[str | None, bool], HttpClient] = {}
        self._validators: dict[str | None, AuthenticationValidator] = {}

        self.configuration: ConfigurationLoad | None = None
        self.endpoints: EndpointSet | None = None
        self.agent_settings = AgentSettingsMap()
        self.proxy = ProxyConfig()

    @property
    def environment(self) -> HostEnvironment:
        if self._environment is None:
            self._environment = detect_environment(self.settings.arc_marker_path)
        return self._environment

    def _client(self, proxy: ProxyConfig, *, verify: bool) -> HttpClient:
        if self._injected_client is not None:
            return self._injected_client
        key = (proxy.url(), verify)
        if key not in self._clients:
            client = create_default_http_client(self.settings, proxy=key[0], verify=verify)
            self._owned_clients.append(client)
            self._clients[key] = client
        return self._clients[key]

    @property
    def metadata_client(self) -> HttpClient:
        if self._metadata_client is None:
            if self._injected_client is not None:
                self._metadata_client = self._injected_client
            else:
                self._metadata_client = create_default_http_client(self.settings, proxy=None)
                self._owned_clients.append(self._metadata_client)
        return self._metadata_client

    def load_configuration(self, path: str | Path | None = None) -> tuple[EndpointSet, AgentSettingsMap]:
        """
        Read the configuration directory and resolve endpoints.

        Raises ConfigurationUnavailable or NoWorkspacesFound; per-file problems are kept
        on ``self.configuration.malformed``.
        """
        self.configuration = read_configuration(path or self.settings.config_dir)
        self.endpoints = resolve_endpoints(self.configuration.records)
        self.agent_settings = self.configuration.settings
        self.proxy = resolve_proxy(
            environ=self.environ,
            proxy_file=self.settings.proxy_config_file,
            settings=self.agent_settings,
        )
        if self.proxy.configured:
            logger.info("Using proxy %s", self.proxy.display())
        return self.endpoints, self.agent_settings

    def probe_engine(self, proxy: ProxyConfig | None = None) -> ProbeEngine:
        proxy = self.proxy if proxy is None else proxy
        return ProbeEngine(
            self._client(proxy, verify=False),
            proxy=proxy,
            settings=self.settings,
            resolver=self.resolver,
            tls_connector=self.tls_connector,
            metadata_client=self.metadata_client,
        )

    def run_probes(
        self,
        endpoints: EndpointSet,
        proxy: ProxyConfig | None = None,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
        *,
        include_metadata: bool = False,
        on_result: ResultCallback | None = None,
    ) -> list[ProbeResult]:
        """Probe every endpoint target; ``timeout`` bounds the whole run."""
        cancel = cancel or CancelToken(timeout)
        engine = self.probe_engine(proxy)
        targets = build_probe_targets(endpoints)
        logger.info("Probing %d endpoint(s) with up to %d worker(s)", len(targets), self.settings.worker_count())

        results: list[ProbeResult] = []
        if include_metadata:
            endpoint = metadata_endpoint(self.environment)
            result = engine.probe_instance_metadata(metadata_probe_target(endpoint.host, endpoint.port), cancel)
            if on_result is not None:
                on_result(result)
            results.append(result)
        results.extend(run_probe_pool(engine, targets, cancel=cancel, on_result=on_result))
        return results

    def validator(self, proxy: ProxyConfig | None = None) -> AuthenticationValidator:
        proxy = self.proxy if proxy is None else proxy
        key = proxy.url()
        if key not in self._validators:
            self._validators[key] = AuthenticationValidator(
                self._client(proxy, verify=self.settings.verify_ssl),
                metadata_client=self.metadata_client,
                settings=self.settings,
                environment=self.environment,
            )
        return self._validators[key]

    def authenticate(
        self,
        method: AuthMethod,
        credentials: SharedKeyCredentials | ManagedIdentityCredentials | None,
        target: IngestionTarget,
        payload: Payload | dict[str, Any] | str | None = None,
        cancel: CancelToken | None = None,
    ) -> AuthOutcome:
        return self.validator().authenticate(method, credentials, target, payload, cancel)

    def managed_identity_credentials(self, resource: str | None = None) -> ManagedIdentityCredentials:
        """Credentials honouring the agent's configured user-assigned identity, if any."""
        selector = IdentitySelector.parse(self.agent_settings.get(MANAGED_IDENTITY_SETTING))
        if selector is not None:
            logger.info("Using managed identity %s", selector.kind.value)
        if resource:
            return ManagedIdentityCredentials(resource=resource, selector=selector)
        return ManagedIdentityCredentials(selector=selector)

    def summarize(
        self,
        probe_results: Iterable[ProbeResult],
        auth_outcomes: Iterable[AuthOutcome] = (),
    ) -> Report:
        return summarize(
            probe_results,
            auth_outcomes,
            endpoints=self.endpoints,
            proxy=self.proxy,
            policy=self.policy,
        )

    def diagnose(
        self,
        path: str | Path | None = None,
        *,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
    ) -> Report:
        """
        Full run: configuration, metadata and endpoint probes, then anonymous ingestion checks.

        ``timeout`` bounds every request in the run; checks it stops are reported as cancelled.
        """
        endpoints, _ = self.load_configuration(path)
        cancel = cancel or CancelToken(timeout)
        aggregator = ReportAggregator(self.policy)
        self.run_probes(endpoints, self.proxy, cancel=cancel, include_metadata=True, on_result=aggregator.add_probe_result)

        if cancel.is_set():
            logger.warning("Run cancelled before authentication checks")
        validator = self.validator()
        aggregator.add_auth_outcome(validator.check_token_endpoint(cancel=cancel))
        for workspace_id in endpoints.workspace_ids:
            target = IngestionTarget(workspace_id=workspace_id, cloud_suffix=endpoints.cloud_suffix)
            aggregator.add_auth_outcome(validator.check_ingestion_reachability(target, cancel=cancel))
        return aggregator.summarize(endpoints=endpoints, proxy=self.proxy)

    def close(self) -> None:
        for client in self._owned_clients:
            with suppress(Exception):
                client.close()
        self._owned_clients.clear()
        self._clients.clear()
        self._validators.clear()

    def __enter__(self) -> ConnectivityDiagnostics:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()


__all__ = ["ConnectivityDiagnostics"]
