# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Data collection rule (DCR) parsing and endpoint resolution."""

from .extract import (
    detect_cloud_marker,
    extract_metrics_region,
    extract_region,
    extract_workspace_id,
    merge_cloud_suffix,
)
from .reader import decode_settings, parse_channels, read_configuration
from .resolver import build_probe_targets, ingestion_host, resolve_endpoints

__all__ = [
    "build_probe_targets",
    "decode_settings",
    "detect_cloud_marker",
    "extract_metrics_region",
    "extract_region",
    "extract_workspace_id",
    "ingestion_host",
    "merge_cloud_suffix",
    "parse_channels",
    "read_configuration",
    "resolve_endpoints",
]
