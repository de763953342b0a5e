# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import random
import threading

from amaprobe.errors import ErrorCategory
from amaprobe.models import (
    AuthClassification,
    AuthMethod,
    AuthOutcome,
    CloudSuffix,
    CountingPolicy,
    EndpointSet,
    ProbeOutcome,
    ProbeResult,
    ProbeRole,
    ProbeStage,
    ProbeTarget,
)
from amaprobe.proxy import ProxyConfig
from amaprobe.report import ReportAggregator, render_report, summarize


def _result(host, outcome, role=ProbeRole.LOG_ANALYTICS, category=None):
    return ProbeResult(ProbeTarget(host, role), ProbeStage.TLS, outcome, "detail", category)


def _outcome(classification, status=None, target="ws.ods.opinsights.azure.com"):
    return AuthOutcome(AuthMethod.ANONYMOUS, classification, status, None, "", target)


def test_counts_soft_outcomes_as_passed():
    report = summarize(
        [_result("a", ProbeOutcome.PASS), _result("b", ProbeOutcome.WARN), _result("c", ProbeOutcome.FAIL)],
        [
            _outcome(AuthClassification.AUTH_REQUIRED_AS_EXPECTED, 401),
            _outcome(AuthClassification.UNEXPECTED, 418),
            _outcome(AuthClassification.UNREACHABLE),
        ],
    )
    assert report.total == 6
    assert report.passed == 4
    assert report.failed == 2
    assert report.warned == 1
    assert report.unexpected == 1
    assert report.exit_code() == 1


def test_unexpected_can_count_as_failure():
    report = summarize([], [_outcome(AuthClassification.UNEXPECTED, 302)], policy=CountingPolicy(True))
    assert report.failed == 1
    assert report.unexpected == 1


def test_accepted_ingestion_has_no_failures():
    report = summarize([], [_outcome(AuthClassification.REACHABLE, 202)])
    assert report.failed == 0
    assert report.success
    assert report.exit_code() == 0


def test_summary_is_independent_of_arrival_order():
    results = [
        _result("global", ProbeOutcome.PASS, ProbeRole.GLOBAL_HANDLER),
        _result("mgmt", ProbeOutcome.WARN, ProbeRole.MANAGEMENT),
        _result("ws1", ProbeOutcome.FAIL),
        _result("ws2", ProbeOutcome.PASS),
    ]
    outcomes = [_outcome(AuthClassification.REACHABLE, 200, "a"), _outcome(AuthClassification.REJECTED, 429, "b")]
    baseline = summarize(results, outcomes)
    for seed in range(5):
        shuffled_results = list(results)
        shuffled_outcomes = list(outcomes)
        random.Random(seed).shuffle(shuffled_results)
        random.Random(seed).shuffle(shuffled_outcomes)
        assert summarize(shuffled_results, shuffled_outcomes) == baseline
    assert baseline.probe_results[0].target.host == "global"


def test_aggregator_is_safe_under_concurrent_appends():
    aggregator = ReportAggregator()
    barrier = threading.Barrier(8)

    def worker(index):
        barrier.wait()
        for item in range(50):
            aggregator.add_probe_result(_result(f"h{index}-{item}", ProbeOutcome.PASS))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    report = aggregator.summarize()
    assert report.total == 400
    assert report.passed == 400


def test_configuration_summary_and_rendering():
    endpoints = EndpointSet(("ws1",), ("eastus",), (), CloudSuffix.GOVERNMENT)
    proxy = ProxyConfig(address="http://proxy:3128", username="u", password="s3cr3t-pass")
    cancelled = _result("ws1", ProbeOutcome.FAIL, category=ErrorCategory.CANCELLED)
    report = summarize([cancelled], [], endpoints=endpoints, proxy=proxy)

    assert report.cancelled
    assert report.configuration.workspace_count == 1
    assert report.configuration.cloud_suffix is CloudSuffix.GOVERNMENT
    assert report.configuration.proxy_configured

    data = report.to_dict()
    assert data["configuration"]["cloud_suffix"] == ".us"
    assert data["probes"][0]["category"] == "CANCELLED"

    text = render_report(report)
    assert "Cloud: Azure.us" in text
    assert "[FAIL]" in text
    assert "Troubleshooting" in text
    assert "s3cr3t-pass" not in text
