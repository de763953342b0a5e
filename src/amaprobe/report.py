# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Report aggregation and text rendering."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from .models.auth import AuthClassification, AuthOutcome
from .models.endpoints import EndpointSet, ProbeRole
from .models.probe import ProbeOutcome, ProbeResult
from .models.report import ConfigurationSummary, CountingPolicy, Report
from .proxy import ProxyConfig

_ROLE_ORDER = {role: index for index, role in enumerate(ProbeRole)}

_AUTH_PASSED = {AuthClassification.REACHABLE, AuthClassification.AUTH_REQUIRED_AS_EXPECTED}
_AUTH_FAILED = {
    AuthClassification.UNREACHABLE,
    AuthClassification.AUTHENTICATION_FAILED,
    AuthClassification.REJECTED,
}

_OUTCOME_MARKERS = {
    ProbeOutcome.PASS: "[PASS]",
    ProbeOutcome.WARN: "[WARN]",
    ProbeOutcome.FAIL: "[FAIL]",
}


def _probe_sort_key(result: ProbeResult) -> tuple[int, str, int, str]:
    return (
        _ROLE_ORDER.get(result.target.role, len(_ROLE_ORDER)),
        result.target.host,
        result.target.port,
        result.stage.value,
    )


def _auth_sort_key(outcome: AuthOutcome) -> tuple[str, str, str, int]:
    return (
        outcome.method.value,
        outcome.target or "",
        outcome.classification.value,
        outcome.http_status if outcome.http_status is not None else -1,
    )


def configuration_summary(endpoints: EndpointSet | None, proxy: ProxyConfig | None) -> ConfigurationSummary:
    endpoints = endpoints or EndpointSet()
    proxy = proxy or ProxyConfig()
    return ConfigurationSummary(
        workspace_count=len(endpoints.workspace_ids),
        region_count=len(endpoints.regions),
        metrics_region_count=len(endpoints.metrics_regions),
        cloud_suffix=endpoints.cloud_suffix,
        proxy_configured=proxy.configured,
        workspace_ids=endpoints.workspace_ids,
        regions=endpoints.regions,
        metrics_regions=endpoints.metrics_regions,
        proxy_address=proxy.display() if proxy.configured else None,
    )


def summarize(
    probe_results: Iterable[ProbeResult],
    auth_outcomes: Iterable[AuthOutcome] = (),
    *,
    endpoints: EndpointSet | None = None,
    proxy: ProxyConfig | None = None,
    policy: CountingPolicy | None = None,
) -> Report:
    """Pure function of its inputs; arrival order does not affect the report."""
    policy = policy or CountingPolicy()
    probes = tuple(sorted(probe_results, key=_probe_sort_key))
    outcomes = tuple(sorted(auth_outcomes, key=_auth_sort_key))

    passed = failed = warned = unexpected = 0
    for result in probes:
        if result.outcome is ProbeOutcome.FAIL:
            failed += 1
        else:
            passed += 1
            if result.outcome is ProbeOutcome.WARN:
                warned += 1

    for outcome in outcomes:
        if outcome.classification in _AUTH_PASSED:
            passed += 1
        elif outcome.classification in _AUTH_FAILED:
            failed += 1
        else:
            unexpected += 1
            if policy.unexpected_counts_as_failure:
                failed += 1
            else:
                passed += 1

    return Report(
        total=len(probes) + len(outcomes),
        passed=passed,
        failed=failed,
        warned=warned,
        unexpected=unexpected,
        cancelled=any(item.cancelled for item in (*probes, *outcomes)),
        configuration=configuration_summary(endpoints, proxy),
        probe_results=probes,
        auth_outcomes=outcomes,
    )


class ReportAggregator:
    """Thread-safe, append-only accumulation point for results arriving from workers."""

    def __init__(self, policy: CountingPolicy | None = None):
        self.policy = policy or CountingPolicy()
        self._lock = threading.Lock()
        self._probe_results: list[ProbeResult] = []
        self._auth_outcomes: list[AuthOutcome] = []

    def add_probe_result(self, result: ProbeResult) -> None:
        with self._lock:
            self._probe_results.append(result)

    def add_auth_outcome(self, outcome: AuthOutcome) -> None:
        with self._lock:
            self._auth_outcomes.append(outcome)

    def extend(self, results: Iterable[ProbeResult] = (), outcomes: Iterable[AuthOutcome] = ()) -> None:
        with self._lock:
            self._probe_results.extend(results)
            self._auth_outcomes.extend(outcomes)

    def summarize(self, *, endpoints: EndpointSet | None = None, proxy: ProxyConfig | None = None) -> Report:
        with self._lock:
            probes = list(self._probe_results)
            outcomes = list(self._auth_outcomes)
        return summarize(probes, outcomes, endpoints=endpoints, proxy=proxy, policy=self.policy)


def _auth_marker(outcome: AuthOutcome) -> str:
    if outcome.classification in _AUTH_PASSED:
        return "[PASS]"
    if outcome.classification in _AUTH_FAILED:
        return "[FAIL]"
    return "[WARN]"


def render_report(report: Report) -> str:
    config = report.configuration
    lines = [
        "Azure Monitor Agent connectivity report",
        "=======================================",
        f"Workspaces: {config.workspace_count} ({', '.join(config.workspace_ids) or '-'})",
        f"Regions: {config.region_count} ({', '.join(config.regions) or '-'})",
        f"Metrics regions: {config.metrics_region_count} ({', '.join(config.metrics_regions) or '-'})",
        f"Cloud: Azure{config.cloud_suffix.value}",
        f"Proxy: {config.proxy_address or 'None'}",
        "",
    ]

    if report.probe_results:
        lines.append("Endpoint probes:")
        for result in report.probe_results:
            marker = _OUTCOME_MARKERS[result.outcome]
            lines.append(f"  {marker} {result.target.display_name} {result.target.host} [{result.stage.value}] {result.detail}")
        lines.append("")

    if report.auth_outcomes:
        lines.append("Authentication:")
        for outcome in report.auth_outcomes:
            status = f"HTTP {outcome.http_status}" if outcome.http_status is not None else "no response"
            lines.append(
                f"  {_auth_marker(outcome)} {outcome.method.value} {outcome.target or '-'} "
                f"{outcome.classification.value} ({status}) {outcome.detail}"
            )
        lines.append("")

    lines.append(
        f"Total: {report.total}  Passed: {report.passed}  Failed: {report.failed}  "
        f"Warnings: {report.warned}  Unexpected: {report.unexpected}"
    )
    if report.cancelled:
        lines.append("Run was cancelled before all targets completed.")

    if report.failed:
        lines.extend(
            [
                "",
                "Troubleshooting:",
                "  - Check firewall rules allow outbound HTTPS (443) to Azure Monitor endpoints",
                "  - Verify DNS resolution for the failing hosts",
                "  - If a proxy is used, confirm its address and credentials",
                "  - For authentication failures, verify the workspace key or managed identity permissions",
            ]
        )
    else:
        lines.append("All connectivity checks passed.")
    return "\n".join(lines)


__all__ = ["ReportAggregator", "configuration_summary", "render_report", "summarize"]
