# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import socket
import ssl
import threading

from amaprobe.cancel import CancelToken
from amaprobe.config import ProbeSettings
from amaprobe.errors import ErrorCategory
from amaprobe.http import HttpResponse, StubHttpClient
from amaprobe.models import ProbeOutcome, ProbeRole, ProbeStage, ProbeTarget
from amaprobe.probe import ProbeEngine, TlsHandshake, metadata_probe_target, run_probes
from amaprobe.proxy import ProxyConfig

GLOBAL = ProbeTarget("global.handler.control.monitor.azure.com", ProbeRole.GLOBAL_HANDLER)
WORKSPACE = ProbeTarget("ws.ods.opinsights.azure.com", ProbeRole.LOG_ANALYTICS, "ws")


class FakeResolver:
    def __init__(self, failures=None):
        self.failures = failures or {}
        self.calls = []
        self._lock = threading.Lock()

    def resolve(self, host, timeout):
        with self._lock:
            self.calls.append((host, timeout))
        if host in self.failures:
            raise self.failures[host]
        return ["10.0.0.1"]


class FakeTls:
    def __init__(self, handshake=None, error=None):
        self.handshake_result = handshake or TlsHandshake(verified=True, protocol="TLSv1.3")
        self.error = error
        self.calls = []

    def handshake(self, host, port, timeout, proxy=None):
        self.calls.append((host, port, proxy))
        if self.error is not None:
            raise self.error
        return self.handshake_result


def _engine(http=None, resolver=None, tls=None, proxy=None, metadata=None):
    return ProbeEngine(
        http or StubHttpClient(),
        proxy=proxy,
        settings=ProbeSettings(max_workers=4),
        resolver=resolver or FakeResolver(),
        tls_connector=tls or FakeTls(),
        metadata_client=metadata,
    )


def _healthy(url):
    return StubHttpClient({url: HttpResponse(ok=True, status_code=200, text="Healthy")})


def test_dns_failure_short_circuits():
    resolver = FakeResolver({GLOBAL.host: socket.gaierror(-2, "Name or service not known")})
    tls = FakeTls()
    http = StubHttpClient()
    result = _engine(http, resolver, tls).probe(GLOBAL)

    assert result.outcome is ProbeOutcome.FAIL
    assert result.stage is ProbeStage.DNS
    assert result.stages == (ProbeStage.DNS,)
    assert result.category == ErrorCategory.DNS_ERROR
    assert tls.calls == []
    assert http.requests == []


def test_dns_timeout_is_a_failure_not_a_crash():
    resolver = FakeResolver({GLOBAL.host: TimeoutError("DNS lookup timed out")})
    result = _engine(resolver=resolver).probe(GLOBAL)
    assert result.outcome is ProbeOutcome.FAIL
    assert result.category == ErrorCategory.TIMEOUT


def test_healthy_ping_passes():
    http = _healthy(f"https://{GLOBAL.host}/ping")
    result = _engine(http).probe(GLOBAL)
    assert result.outcome is ProbeOutcome.PASS
    assert result.stage is ProbeStage.HTTP
    assert result.stages == (ProbeStage.DNS, ProbeStage.TLS, ProbeStage.HTTP)


def test_unexpected_ping_body_warns():
    http = StubHttpClient({f"https://{GLOBAL.host}/ping": HttpResponse(ok=True, status_code=200, text="<html>")})
    result = _engine(http).probe(GLOBAL)
    assert result.outcome is ProbeOutcome.WARN
    assert result.stage is ProbeStage.HTTP


def test_ping_transport_failure_fails_at_http():
    http = StubHttpClient(
        {
            f"https://{GLOBAL.host}/ping": HttpResponse(
                ok=False, error_message="connection reset", category=ErrorCategory.CONNECTION_ERROR
            )
        }
    )
    result = _engine(http).probe(GLOBAL)
    assert result.outcome is ProbeOutcome.FAIL
    assert result.stage is ProbeStage.HTTP
    assert result.category == ErrorCategory.CONNECTION_ERROR


def test_untrusted_certificate_warns():
    tls = FakeTls(TlsHandshake(verified=False, verify_error="self-signed certificate in certificate chain"))
    result = _engine(_healthy(f"https://{GLOBAL.host}/ping"), tls=tls).probe(GLOBAL)
    assert result.outcome is ProbeOutcome.WARN
    assert result.category == ErrorCategory.CERT_VERIFY_ERROR
    assert "self-signed" in result.detail


def test_tls_failure_stops_before_http():
    http = StubHttpClient()
    tls = FakeTls(error=ssl.SSLError("handshake failure"))
    result = _engine(http, tls=tls).probe(GLOBAL)
    assert result.outcome is ProbeOutcome.FAIL
    assert result.stage is ProbeStage.TLS
    assert http.requests == []


def test_ingestion_target_passes_at_tls_without_http():
    http = StubHttpClient()
    result = _engine(http).probe(WORKSPACE)
    assert result.outcome is ProbeOutcome.PASS
    assert result.stage is ProbeStage.TLS
    assert http.requests == []


def test_unauthenticated_proxy_tunnels_tls():
    tls = FakeTls()
    _engine(tls=tls, proxy=ProxyConfig(address="http://proxy:3128")).probe(WORKSPACE)
    assert tls.calls == [(WORKSPACE.host, 443, ("proxy", 3128))]


def test_unusable_proxy_address_fails_tls_instead_of_going_direct():
    tls = FakeTls()
    result = _engine(tls=tls, proxy=ProxyConfig(address="http://proxy.corp:not-a-port")).probe(WORKSPACE)
    assert tls.calls == []
    assert result.outcome is ProbeOutcome.FAIL
    assert result.stage is ProbeStage.TLS
    assert result.category is ErrorCategory.PROXY_ERROR


def test_authenticated_proxy_skips_tls():
    tls = FakeTls()
    proxy = ProxyConfig(address="http://proxy:3128", username="u", password="p")
    result = _engine(tls=tls, proxy=proxy).probe(WORKSPACE)
    assert tls.calls == []
    assert result.outcome is ProbeOutcome.PASS
    assert result.stage is ProbeStage.DNS
    assert ProbeStage.TLS not in result.stages


def test_cancelled_before_start_reports_cancelled_at_dns():
    cancel = CancelToken()
    cancel.cancel()
    resolver = FakeResolver()
    result = _engine(resolver=resolver).probe(GLOBAL, cancel)
    assert result.outcome is ProbeOutcome.FAIL
    assert result.stage is ProbeStage.DNS
    assert result.cancelled
    assert resolver.calls == []


def test_instance_metadata_probe():
    target = metadata_probe_target("169.254.169.254", 80)
    url = "http://169.254.169.254/metadata/instance/compute?api-version=2020-06-01"
    metadata = StubHttpClient(
        {url: HttpResponse(ok=True, status_code=200, text='{"location": "eastus", "resourceId": "/subscriptions/x"}')}
    )
    result = _engine(metadata=metadata).probe_instance_metadata(target)
    assert result.outcome is ProbeOutcome.PASS
    assert metadata.requests[0].headers == {"Metadata": "true"}

    metadata.add(url, HttpResponse(ok=True, status_code=200, text="{}"))
    assert _engine(metadata=metadata).probe_instance_metadata(target).outcome is ProbeOutcome.WARN

    arc = metadata_probe_target("127.0.0.1", 40342)
    assert _engine(metadata=StubHttpClient()).probe_instance_metadata(arc).outcome is ProbeOutcome.FAIL


def test_run_probes_preserves_target_order():
    targets = [ProbeTarget(f"host{i}.ods.opinsights.azure.com", ProbeRole.LOG_ANALYTICS, str(i)) for i in range(10)]
    resolver = FakeResolver({"host3.ods.opinsights.azure.com": socket.gaierror(-2, "nope")})
    results = run_probes(_engine(resolver=resolver), targets)
    assert [result.target for result in results] == targets
    assert results[3].outcome is ProbeOutcome.FAIL
    assert sum(result.outcome is ProbeOutcome.PASS for result in results) == 9


def test_run_probes_reports_queued_targets_as_cancelled():
    started = threading.Event()
    release = threading.Event()
    cancel = CancelToken()

    class BlockingResolver(FakeResolver):
        def resolve(self, host, timeout):
            if host == "host0.ods.opinsights.azure.com":
                started.set()
                release.wait(5)
                cancel.cancel()
            return super().resolve(host, timeout)

    targets = [ProbeTarget(f"host{i}.ods.opinsights.azure.com", ProbeRole.LOG_ANALYTICS) for i in range(5)]
    engine = _engine(resolver=BlockingResolver())
    timer = threading.Timer(0.05, release.set)
    timer.start()
    try:
        results = run_probes(engine, targets, cancel=cancel, max_workers=1)
    finally:
        timer.cancel()

    assert started.is_set()
    assert len(results) == 5
    assert results[0].cancelled
    assert results[0].stage is ProbeStage.TLS
    assert all(result.cancelled and result.stage is ProbeStage.DNS for result in results[1:])


def test_run_probes_with_no_targets():
    assert run_probes(_engine(), []) == []
