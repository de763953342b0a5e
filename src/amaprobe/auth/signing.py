# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Shared-key request signing for the HTTP Data Collector ingestion API."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re
from email.utils import formatdate

INGESTION_RESOURCE = "/api/logs"
INGESTION_API_VERSION = "2016-04-01"
CONTENT_TYPE = "application/json"

_GUID = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def validate_workspace_id(workspace_id: str) -> str:
    """Return the workspace id unchanged when it is a hyphenated GUID, else raise ValueError."""
    if not isinstance(workspace_id, str) or not _GUID.fullmatch(workspace_id):
        raise ValueError(f"Workspace ID must be a GUID: {workspace_id!r}")
    return workspace_id


def decode_shared_key(shared_key: str) -> bytes:
    try:
        key = base64.b64decode(shared_key, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Shared key is not valid base64") from exc
    if not key:
        raise ValueError("Shared key is empty")
    return key


def rfc1123_date(timestamp: float | None = None) -> str:
    return formatdate(timeval=timestamp, usegmt=True)


def build_string_to_sign(
    content_length: int,
    date: str,
    *,
    method: str = "POST",
    content_type: str = CONTENT_TYPE,
    resource: str = INGESTION_RESOURCE,
) -> str:
    return f"{method}\n{content_length}\n{content_type}\nx-ms-date:{date}\n{resource}"


def sign_shared_key(workspace_id: str, shared_key: str, content_length: int, date: str) -> str:
    """Return the ``SharedKey {workspace}:{signature}`` authorization value."""
    key = decode_shared_key(shared_key)
    string_to_sign = build_string_to_sign(content_length, date)
    digest = hmac.new(key, string_to_sign.encode("utf-8"), hashlib.sha256).digest()
    signature = base64.b64encode(digest).decode("ascii")
    return f"SharedKey {workspace_id}:{signature}"


def ingestion_url(host: str) -> str:
    return f"https://{host}{INGESTION_RESOURCE}?api-version={INGESTION_API_VERSION}"


__all__ = [
    "CONTENT_TYPE",
    "INGESTION_API_VERSION",
    "INGESTION_RESOURCE",
    "build_string_to_sign",
    "decode_shared_key",
    "ingestion_url",
    "rfc1123_date",
    "sign_shared_key",
    "validate_workspace_id",
]
