# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication request/outcome models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .endpoints import CloudSuffix


class AuthMethod(str, Enum):
    SHARED_KEY = "SharedKey"
    MANAGED_IDENTITY_TOKEN = "ManagedIdentityToken"
    ANONYMOUS = "Anonymous"


class AuthClassification(str, Enum):
    REACHABLE = "Reachable"
    UNREACHABLE = "Unreachable"
    AUTH_REQUIRED_AS_EXPECTED = "AuthRequiredAsExpected"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    REJECTED = "Rejected"
    UNEXPECTED = "Unexpected"


class AuthFailureReason(str, Enum):
    MALFORMED_PAYLOAD = "malformed_payload"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    TOKEN_INVALID = "token_invalid_or_expired"
    IDENTITY_LACKS_PERMISSION = "identity_lacks_ingestion_permission"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    THROTTLED = "throttled"
    SERVER_ERROR = "server_error"
    UNCLASSIFIED_STATUS = "unclassified_status"
    TOKEN_ACQUISITION_FAILED = "token_acquisition_failed"
    CHALLENGE_UNAVAILABLE = "challenge_unavailable"
    CHALLENGE_PATH_REJECTED = "challenge_path_rejected"
    TRANSPORT = "transport"
    CANCELLED = "cancelled"


class IdentityKind(str, Enum):
    CLIENT_ID = "client_id"
    MI_RES_ID = "mi_res_id"
    OBJECT_ID = "object_id"


@dataclass(frozen=True)
class IdentitySelector:
    """A user-assigned identity selector appended to token requests."""

    kind: IdentityKind
    value: str

    @classmethod
    def parse(cls, raw: str | None) -> IdentitySelector | None:
        """Parse the agent's ``name#value`` form; unknown names mean system-assigned."""
        if not raw or "#" not in raw:
            return None
        name, _, value = raw.partition("#")
        try:
            kind = IdentityKind(name.strip())
        except ValueError:
            return None
        value = value.strip()
        if not value:
            return None
        return cls(kind=kind, value=value)


@dataclass(frozen=True)
class SharedKeyCredentials:
    workspace_id: str
    shared_key: str

    def __repr__(self) -> str:
        return f"SharedKeyCredentials(workspace_id={self.workspace_id!r}, shared_key=<redacted>)"


@dataclass(frozen=True)
class ManagedIdentityCredentials:
    resource: str = "https://api.loganalytics.io"
    selector: IdentitySelector | None = None


@dataclass(frozen=True)
class IngestionTarget:
    """Where an ingestion call goes and which custom log table it writes to."""

    workspace_id: str
    log_type: str = "AMAConnectivityTest_CL"
    cloud_suffix: CloudSuffix = CloudSuffix.PUBLIC

    @property
    def host(self) -> str:
        return f"{self.workspace_id}.ods.opinsights.azure{self.cloud_suffix.value}"


@dataclass(frozen=True)
class AccessToken:
    token: str
    resource: str | None = None
    expires_on: int | None = None

    def __repr__(self) -> str:
        return f"AccessToken(resource={self.resource!r}, expires_on={self.expires_on!r})"


@dataclass(frozen=True)
class AuthOutcome:
    method: AuthMethod
    classification: AuthClassification
    http_status: int | None = None
    reason: AuthFailureReason | None = None
    detail: str = ""
    target: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.classification in {AuthClassification.REACHABLE, AuthClassification.AUTH_REQUIRED_AS_EXPECTED}

    @property
    def cancelled(self) -> bool:
        return self.reason is AuthFailureReason.CANCELLED

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "classification": self.classification.value,
            "http_status": self.http_status,
            "reason": self.reason.value if self.reason else None,
            "detail": self.detail,
            "target": self.target,
        }
