# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Endpoint resolver: RoutingRecords -> EndpointSet -> ProbeTargets."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..errors import NoWorkspacesFound
from ..models.endpoints import CloudSuffix, EndpointSet, ProbeRole, ProbeTarget
from ..models.routing import ChannelProtocol, RecordKind, RoutingRecord
from .extract import (
    detect_cloud_marker,
    extract_metrics_region,
    extract_region,
    extract_workspace_id,
    merge_cloud_suffix,
)

logger = logging.getLogger(__name__)

GLOBAL_HANDLER_TEMPLATE = "global.handler.control.monitor.azure{suffix}"
REGIONAL_HANDLER_TEMPLATE = "{region}.handler.control.monitor.azure{suffix}"
LOG_ANALYTICS_TEMPLATE = "{workspace_id}.ods.opinsights.azure{suffix}"
MANAGEMENT_TEMPLATE = "management.azure{suffix}"
METRICS_TEMPLATE = "{region}.monitoring.azure{suffix}"


def _add_unique(bucket: list[str], value: str | None) -> bool:
    if value and value not in bucket:
        bucket.append(value)
        return True
    return False


def resolve_endpoints(records: Iterable[RoutingRecord]) -> EndpointSet:
    """Derive the deduplicated endpoint set; raises NoWorkspacesFound when no workspace is present."""
    workspace_ids: list[str] = []
    regions: list[str] = []
    metrics_regions: list[str] = []
    suffix = CloudSuffix.PUBLIC

    for record in records:
        if record.kind is not RecordKind.CHANNEL:
            continue
        suffix = merge_cloud_suffix(suffix, detect_cloud_marker(record.endpoint_url))

        if record.protocol is ChannelProtocol.ODS:
            if _add_unique(workspace_ids, extract_workspace_id(record.endpoint_url)):
                logger.info("Found Log Analytics workspace: %s", workspace_ids[-1])
            if _add_unique(regions, extract_region(record.token_endpoint_url)):
                logger.info("Found region: %s", regions[-1])
        elif record.protocol is ChannelProtocol.ME:
            if _add_unique(metrics_regions, extract_metrics_region(record.endpoint_url)):
                logger.info("Found metrics region: %s", metrics_regions[-1])

    if not workspace_ids:
        raise NoWorkspacesFound("No Log Analytics workspaces found in DCR configurations")

    if suffix.is_sovereign:
        logger.info("Detected sovereign cloud suffix %s", suffix.value)

    return EndpointSet(
        workspace_ids=tuple(workspace_ids),
        regions=tuple(regions),
        metrics_regions=tuple(metrics_regions),
        cloud_suffix=suffix,
    )


def ingestion_host(workspace_id: str, suffix: CloudSuffix = CloudSuffix.PUBLIC) -> str:
    return LOG_ANALYTICS_TEMPLATE.format(workspace_id=workspace_id, suffix=suffix.value)


def build_probe_targets(endpoints: EndpointSet) -> list[ProbeTarget]:
    """Expand an EndpointSet into the fixed probe templates, in agent startup order."""
    suffix = endpoints.cloud_suffix.value
    targets = [ProbeTarget(GLOBAL_HANDLER_TEMPLATE.format(suffix=suffix), ProbeRole.GLOBAL_HANDLER)]
    targets.extend(
        ProbeTarget(REGIONAL_HANDLER_TEMPLATE.format(region=region, suffix=suffix), ProbeRole.REGIONAL_HANDLER, region)
        for region in endpoints.regions
    )
    targets.extend(
        ProbeTarget(ingestion_host(workspace_id, endpoints.cloud_suffix), ProbeRole.LOG_ANALYTICS, workspace_id)
        for workspace_id in endpoints.workspace_ids
    )
    targets.append(ProbeTarget(MANAGEMENT_TEMPLATE.format(suffix=suffix), ProbeRole.MANAGEMENT))
    targets.extend(
        ProbeTarget(METRICS_TEMPLATE.format(region=region, suffix=suffix), ProbeRole.METRICS, region)
        for region in endpoints.metrics_regions
    )

    unique: list[ProbeTarget] = []
    seen: set[str] = set()
    for target in targets:
        if target.host in seen:
            continue
        seen.add(target.host)
        unique.append(target)
    return unique


__all__ = ["build_probe_targets", "ingestion_host", "resolve_endpoints"]
