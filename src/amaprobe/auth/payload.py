# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Test payloads for ingestion calls."""

from __future__ import annotations

import json
import socket
import uuid
from datetime import datetime, timezone
from typing import Any

from ..models.auth import AuthMethod

DEFAULT_LOG_TYPE = "AMAConnectivityTest_CL"
PAYLOAD_SOURCE = "AMA-ConnectivityDiagnostics"

Payload = list[dict[str, Any]]


def format_time_generated(moment: datetime | None = None) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_test_payload(
    method: AuthMethod = AuthMethod.SHARED_KEY,
    *,
    environment: str | None = None,
    computer: str | None = None,
    now: datetime | None = None,
    test_id: str | None = None,
) -> Payload:
    record: dict[str, Any] = {
        "TimeGenerated": format_time_generated(now),
        "Computer": computer or socket.gethostname(),
        "TestMessage": "Azure Monitor Agent connectivity test",
        "Source": PAYLOAD_SOURCE,
        "Severity": "Informational",
        "TestId": test_id or str(uuid.uuid4()),
        "Version": "1.0",
    }
    if method is AuthMethod.MANAGED_IDENTITY_TOKEN:
        record["TestMessage"] = "Azure Monitor Agent managed identity authentication test"
        record["AuthMethod"] = "ManagedIdentity"
        record["Environment"] = environment or "AzureVM"
        record["Version"] = "2.0"
    return [record]


def parse_custom_payload(text: str) -> Payload:
    """Parse caller-supplied JSON; a single object is wrapped into a one-element array."""
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ValueError(f"Custom payload is not valid JSON: {exc}") from exc
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list) and all(isinstance(item, dict) for item in data):
        return data
    raise ValueError("Custom payload must be a JSON object or an array of objects")


def normalize_payload(payload: Payload | dict[str, Any] | str | None, default: Payload) -> Payload:
    if payload is None:
        return default
    if isinstance(payload, str):
        return parse_custom_payload(payload)
    if isinstance(payload, dict):
        return [payload]
    return list(payload)


def serialize_payload(records: Payload) -> bytes:
    return json.dumps(records, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


__all__ = [
    "DEFAULT_LOG_TYPE",
    "Payload",
    "build_test_payload",
    "format_time_generated",
    "normalize_payload",
    "parse_custom_payload",
    "serialize_payload",
]
