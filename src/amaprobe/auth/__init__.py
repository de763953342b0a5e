# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication validation against the ingestion API."""

from .environment import HostEnvironment, MetadataEndpoint, detect_environment, metadata_endpoint
from .imds import TokenProvider, read_challenge_file
from .payload import DEFAULT_LOG_TYPE, build_test_payload, parse_custom_payload
from .signing import build_string_to_sign, sign_shared_key, validate_workspace_id
from .validator import CHECK_RESOURCE, AuthenticationValidator, cancelled_outcome

__all__ = [
    "CHECK_RESOURCE",
    "DEFAULT_LOG_TYPE",
    "AuthenticationValidator",
    "HostEnvironment",
    "MetadataEndpoint",
    "TokenProvider",
    "build_string_to_sign",
    "build_test_payload",
    "cancelled_outcome",
    "detect_environment",
    "metadata_endpoint",
    "parse_custom_payload",
    "read_challenge_file",
    "sign_shared_key",
    "validate_workspace_id",
]
