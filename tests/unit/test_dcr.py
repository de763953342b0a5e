# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import itertools
import json

import pytest

from amaprobe.dcr import (
    build_probe_targets,
    decode_settings,
    detect_cloud_marker,
    extract_metrics_region,
    extract_region,
    extract_workspace_id,
    merge_cloud_suffix,
    read_configuration,
    resolve_endpoints,
)
from amaprobe.errors import ConfigurationMalformed, ConfigurationUnavailable, NoWorkspacesFound
from amaprobe.models import ChannelProtocol, CloudSuffix, ProbeRole, RecordKind, RoutingRecord

WS1 = "aaaaaaaa-1111-2222-3333-444444444444"
WS2 = "bbbbbbbb-1111-2222-3333-444444444444"


def _channel_doc(*channels):
    return {"channels": list(channels)}


def _ods(workspace, location="eastus", suffix=".com"):
    return {
        "protocol": "ods",
        "endpoint": f"https://{workspace}.ods.opinsights.azure{suffix}",
        "tokenEndpointUri": f"https://global.handler.control.monitor.azure{suffix}/token?Location={location}",
    }


def _write(path, name, document):
    target = path / name
    target.write_text(document if isinstance(document, str) else json.dumps(document), encoding="utf-8")
    return target


def test_extractors_handle_present_and_missing_values():
    assert extract_workspace_id(f"https://{WS1}.ods.opinsights.azure.com") == WS1
    assert extract_workspace_id("https://example.com/no-marker") is None
    assert extract_workspace_id(".ods.opinsights.azure.com") is None
    assert extract_metrics_region("https://westeurope.monitoring.azure.com/") == "westeurope"
    assert extract_region("https://x/token?Location=eastus") == "eastus"
    assert extract_region("https://x/token?location=westus2&foo=1") == "westus2"
    assert extract_region("https://x/token?Location=") is None
    assert extract_region("https://x/token") is None
    assert extract_region(None) is None


def test_cloud_marker_detection_is_host_based():
    assert detect_cloud_marker(f"https://{WS1}.ods.opinsights.azure.us") == CloudSuffix.GOVERNMENT
    assert detect_cloud_marker(f"https://{WS1}.ods.opinsights.azure.cn") == CloudSuffix.CHINA
    assert detect_cloud_marker(f"https://{WS1}.ods.opinsights.azure.com") is None
    assert detect_cloud_marker("https://example.com/path.azure.us") is None


def test_cloud_suffix_merge_is_order_independent():
    observations = [None, CloudSuffix.PUBLIC, CloudSuffix.GOVERNMENT, CloudSuffix.CHINA]
    finals = set()
    for ordering in itertools.permutations(observations):
        suffix = CloudSuffix.PUBLIC
        for observed in ordering:
            suffix = merge_cloud_suffix(suffix, observed)
        finals.add(suffix)
    assert finals == {CloudSuffix.CHINA}
    assert merge_cloud_suffix(CloudSuffix.GOVERNMENT, CloudSuffix.PUBLIC) == CloudSuffix.GOVERNMENT


def test_decode_settings_accepts_string_and_array():
    nested = [{"name": "MDSD_PROXY_ADDRESS", "value": "http://proxy:3128"}, {"value": "orphan"}]
    assert decode_settings(nested) == [("MDSD_PROXY_ADDRESS", "http://proxy:3128")]
    assert decode_settings(json.dumps(nested)) == [("MDSD_PROXY_ADDRESS", "http://proxy:3128")]
    assert decode_settings(None) == []
    with pytest.raises(ConfigurationMalformed):
        decode_settings("{not json", path="agent.json")
    with pytest.raises(ConfigurationMalformed):
        decode_settings({"name": "x"})


def test_read_configuration_skips_malformed_files(tmp_path):
    _write(tmp_path, "a.json", _channel_doc(_ods(WS1)))
    _write(tmp_path, "b.json", "{broken")
    _write(tmp_path, "c.json", ["not", "an", "object"])
    _write(
        tmp_path,
        "d.json",
        {"kind": "AgentSettings", "settings": json.dumps([{"name": "MANAGED_IDENTITY", "value": "client_id#abc"}])},
    )
    (tmp_path / "nested").mkdir()
    _write(tmp_path / "nested", "e.json", _channel_doc(_ods(WS2)))

    load = read_configuration(tmp_path)

    assert len(load.files_loaded) == 2
    assert {entry.path.rsplit("/", 1)[-1] for entry in load.malformed} == {"b.json", "c.json"}
    assert load.settings["MANAGED_IDENTITY"] == "client_id#abc"
    channels = [record for record in load.records if record.kind is RecordKind.CHANNEL]
    assert len(channels) == 1
    assert channels[0].protocol is ChannelProtocol.ODS


def test_read_configuration_agent_settings_last_write_wins(tmp_path):
    _write(tmp_path, "01.json", {"kind": "AgentSettings", "settings": [{"name": "K", "value": "first"}]})
    _write(tmp_path, "02.json", {"kind": "AgentSettings", "settings": [{"name": "K", "value": "second"}]})
    _write(tmp_path, "03.json", _channel_doc(_ods(WS1)))
    load = read_configuration(tmp_path)
    assert load.settings["K"] == "second"


def test_read_configuration_missing_or_empty_directory(tmp_path):
    with pytest.raises(ConfigurationUnavailable):
        read_configuration(tmp_path / "missing")
    _write(tmp_path, "bad.json", "not json at all")
    with pytest.raises(ConfigurationUnavailable):
        read_configuration(tmp_path)


def test_channels_without_protocol_are_ignored(tmp_path):
    _write(tmp_path, "a.json", _channel_doc({"endpoint": "https://x.ods.opinsights.azure.com"}, _ods(WS1)))
    load = read_configuration(tmp_path)
    assert len(load.records) == 1


def test_single_ods_channel_yields_expected_targets(tmp_path):
    _write(tmp_path, "a.json", _channel_doc(_ods(WS1, "eastus")))
    endpoints = resolve_endpoints(read_configuration(tmp_path).records)

    assert endpoints.workspace_ids == (WS1,)
    assert endpoints.regions == ("eastus",)
    assert endpoints.cloud_suffix == CloudSuffix.PUBLIC

    hosts = [target.host for target in build_probe_targets(endpoints)]
    assert hosts == [
        "global.handler.control.monitor.azure.com",
        "eastus.handler.control.monitor.azure.com",
        f"{WS1}.ods.opinsights.azure.com",
        "management.azure.com",
    ]


def test_government_endpoint_switches_every_template(tmp_path):
    _write(tmp_path, "a.json", _channel_doc(_ods(WS1, "usgovvirginia", ".us")))
    endpoints = resolve_endpoints(read_configuration(tmp_path).records)
    targets = build_probe_targets(endpoints)
    assert endpoints.cloud_suffix == CloudSuffix.GOVERNMENT
    assert all(target.host.endswith(".us") for target in targets)


def test_resolution_is_idempotent_and_deduplicated():
    records = [
        RoutingRecord.channel(ChannelProtocol.ODS, _ods(WS1)["endpoint"], _ods(WS1)["tokenEndpointUri"]),
        RoutingRecord.channel(ChannelProtocol.ODS, _ods(WS1)["endpoint"], _ods(WS1)["tokenEndpointUri"]),
        RoutingRecord.channel(ChannelProtocol.ODS, _ods(WS2, "westus")["endpoint"], _ods(WS2, "westus")["tokenEndpointUri"]),
        RoutingRecord.channel(ChannelProtocol.ME, "https://eastus.monitoring.azure.com/"),
        RoutingRecord.channel(ChannelProtocol.OTHER, "https://ignored.example"),
    ]
    first = resolve_endpoints(records)
    assert first == resolve_endpoints(records)
    assert first.workspace_ids == (WS1, WS2)
    assert first.regions == ("eastus", "westus")
    assert first.metrics_regions == ("eastus",)

    roles = [target.role for target in build_probe_targets(first)]
    assert roles.count(ProbeRole.LOG_ANALYTICS) == 2
    assert roles[-1] is ProbeRole.METRICS


def test_no_workspaces_is_fatal():
    records = [RoutingRecord.channel(ChannelProtocol.ME, "https://eastus.monitoring.azure.com/")]
    with pytest.raises(NoWorkspacesFound):
        resolve_endpoints(records)
