# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Field extraction from routing endpoint URLs.

Every helper returns None when the expected delimiter is absent or the extracted
value would be empty; callers never see an empty string as a valid identifier.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlsplit

from ..models.endpoints import CloudSuffix

ODS_MARKER = ".ods.opinsights.azure"
METRICS_MARKER = ".monitoring.azure"
LOCATION_KEY = "location"

_LABEL_SPLIT_RE = re.compile(r"[./@:]")

_SOVEREIGN_MARKERS: tuple[tuple[CloudSuffix, tuple[str, ...]], ...] = (
    (CloudSuffix.CHINA, (".azure.cn", ".chinacloudapi.cn")),
    (CloudSuffix.GOVERNMENT, (".azure.us", ".usgovcloudapi.net")),
)


def _label_before(url: str | None, marker: str) -> str | None:
    if not url:
        return None
    idx = url.lower().find(marker)
    if idx <= 0:
        return None
    label = _LABEL_SPLIT_RE.split(url[:idx])[-1]
    return label or None


def extract_workspace_id(endpoint_url: str | None) -> str | None:
    """Return the label immediately preceding ``.ods.opinsights.azure``."""
    return _label_before(endpoint_url, ODS_MARKER)


def extract_metrics_region(endpoint_url: str | None) -> str | None:
    """Return the label immediately preceding ``.monitoring.azure``."""
    return _label_before(endpoint_url, METRICS_MARKER)


def extract_region(token_endpoint_url: str | None) -> str | None:
    """Return the value bound to the ``Location`` query key (last occurrence wins)."""
    if not token_endpoint_url:
        return None
    try:
        query = urlsplit(token_endpoint_url).query
    except ValueError:
        return None
    region = None
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key.lower() == LOCATION_KEY:
            region = value.strip() or None
    return region


def _endpoint_host(endpoint_url: str) -> str:
    try:
        host = urlsplit(endpoint_url).hostname
    except ValueError:
        host = None
    return (host or endpoint_url).lower()


def detect_cloud_marker(endpoint_url: str | None) -> CloudSuffix | None:
    """Return the sovereign cloud indicated by an endpoint host, or None for public/unknown."""
    if not endpoint_url:
        return None
    host = _endpoint_host(endpoint_url)
    for suffix, markers in _SOVEREIGN_MARKERS:
        if host.endswith(suffix.value) or any(marker in host for marker in markers):
            return suffix
    return None


def merge_cloud_suffix(current: CloudSuffix, observed: CloudSuffix | None) -> CloudSuffix:
    """
    Fold one observation into the running suffix.

    Public never overrides a sovereign marker, and China outranks Government, so the
    fold is commutative and the final value does not depend on record order.
    """
    if observed is None or observed is CloudSuffix.PUBLIC:
        return current
    if current is CloudSuffix.CHINA:
        return current
    return observed


__all__ = [
    "detect_cloud_marker",
    "extract_metrics_region",
    "extract_region",
    "extract_workspace_id",
    "merge_cloud_suffix",
]
