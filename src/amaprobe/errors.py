# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers."""

from __future__ import annotations

import socket
import ssl
from enum import Enum

import httpx


class AmaProbeError(Exception):
    """Base class for every error raised by the diagnostic engine."""


class ConfigurationUnavailable(AmaProbeError):
    """The configuration directory is missing or holds no parseable documents."""


class ConfigurationMalformed(AmaProbeError):
    """A single configuration document could not be parsed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class NoWorkspacesFound(AmaProbeError):
    """The resolved endpoint set holds no Log Analytics workspace."""


class ProbeFailure(AmaProbeError):
    """A probe stage failed for one target."""

    def __init__(self, stage: str, message: str, category: ErrorCategory | None = None):
        super().__init__(message)
        self.stage = stage
        self.category = category


class AuthenticationFailed(AmaProbeError):
    """Credentials or token could not be obtained or were refused."""

    def __init__(self, reason: str, message: str = ""):
        super().__init__(message or reason)
        self.reason = reason


class UnsafeChallengePath(AuthenticationFailed):
    """A challenge file path pointed outside the allowed token directories."""

    def __init__(self, path: str):
        super().__init__("challenge_path_rejected", f"Challenge path outside allowed directories: {path}")
        self.path = path


class Cancelled(AmaProbeError):
    """The run was cancelled or its deadline elapsed."""


class ErrorCategory(str, Enum):
    TIMEOUT = "TIMEOUT"
    DNS_ERROR = "DNS_ERROR"
    SSL_ERROR = "SSL_ERROR"
    CERT_VERIFY_ERROR = "CERT_VERIFY_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    PROXY_ERROR = "PROXY_ERROR"
    CANCELLED = "CANCELLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NONE = "NONE"


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """
    Map Python/httpx exceptions to ErrorCategory.

    Order matters: ssl.SSLCertVerificationError is an OSError and socket.timeout
    is an alias of TimeoutError on current interpreters.
    """
    if isinstance(exc, Cancelled):
        return ErrorCategory.CANCELLED

    if isinstance(exc, httpx.ProxyError):
        return ErrorCategory.PROXY_ERROR

    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.TIMEOUT

    if isinstance(exc, (httpx.ConnectError, httpx.RemoteProtocolError, httpx.NetworkError)):
        cause = exc.__cause__ or exc.__context__
        if cause is not None and cause is not exc:
            nested = categorize_exception(cause)
            if nested not in {ErrorCategory.UNKNOWN_ERROR, ErrorCategory.NONE}:
                return nested
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, ssl.SSLCertVerificationError):
        return ErrorCategory.CERT_VERIFY_ERROR

    if isinstance(exc, (ssl.SSLError, ssl.CertificateError)):
        return ErrorCategory.SSL_ERROR

    if isinstance(exc, (socket.gaierror, socket.herror)):
        return ErrorCategory.DNS_ERROR

    if isinstance(exc, TimeoutError):
        return ErrorCategory.TIMEOUT

    if isinstance(exc, (ConnectionError, ConnectionRefusedError, ConnectionResetError)):
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, OSError):
        return ErrorCategory.CONNECTION_ERROR

    return ErrorCategory.UNKNOWN_ERROR


def error_category_to_reason(category: ErrorCategory | None) -> str:
    """User-facing reason string."""
    mapping = {
        ErrorCategory.TIMEOUT: "Network timeout during probe",
        ErrorCategory.DNS_ERROR: "DNS resolution failure",
        ErrorCategory.SSL_ERROR: "TLS handshake failure",
        ErrorCategory.CERT_VERIFY_ERROR: "TLS certificate verification failed",
        ErrorCategory.CONNECTION_ERROR: "Network connectivity issue",
        ErrorCategory.PROXY_ERROR: "Proxy refused or failed the connection",
        ErrorCategory.CANCELLED: "Cancelled",
        ErrorCategory.UNKNOWN_ERROR: "Network error during probe",
        ErrorCategory.NONE: "",
        None: "",
    }
    return mapping.get(category, "Probe failed due to network error")


__all__ = [
    "AmaProbeError",
    "AuthenticationFailed",
    "Cancelled",
    "ConfigurationMalformed",
    "ConfigurationUnavailable",
    "ErrorCategory",
    "NoWorkspacesFound",
    "ProbeFailure",
    "UnsafeChallengePath",
    "categorize_exception",
    "error_category_to_reason",
]
