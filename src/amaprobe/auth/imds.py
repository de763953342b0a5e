# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Managed identity token acquisition from the local metadata service.

Azure VMs answer the token request directly. Arc-enabled servers answer the first
request with a ``WWW-Authenticate`` challenge naming a local secret file; its
contents are sent back as ``Authorization: Basic`` to obtain the token.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Sequence
from urllib.parse import urlencode

from ..cancel import CancelToken
from ..config import ProbeSettings, load_probe_settings
from ..errors import AuthenticationFailed, ErrorCategory, ProbeFailure, UnsafeChallengePath
from ..http.client import HttpClient
from ..http.headers import header_value
from ..http.models import HttpRequest, HttpResponse
from ..log import redact
from ..models.auth import AccessToken, AuthFailureReason, ManagedIdentityCredentials
from .environment import HostEnvironment, MetadataEndpoint

logger = logging.getLogger(__name__)

MAX_CHALLENGE_BYTES = 4096


def token_request_url(endpoint: MetadataEndpoint, credentials: ManagedIdentityCredentials) -> str:
    params = {"api-version": endpoint.token_api_version, "resource": credentials.resource}
    if credentials.selector is not None:
        params[credentials.selector.kind.value] = credentials.selector.value
    return f"{endpoint.token_url}?{urlencode(params)}"


def _within(path: str, directory: str) -> bool:
    root = os.path.realpath(directory)
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        return False


def read_challenge_file(raw_path: str, allowed_dirs: Sequence[str]) -> str:
    """
    Read a challenge secret named by a remote header.

    The path is untrusted: it must resolve inside one of ``allowed_dirs`` and name a
    small regular file. Nothing beyond a literal read is performed.
    """
    if not raw_path or "\x00" in raw_path:
        raise UnsafeChallengePath(raw_path)
    resolved = os.path.realpath(raw_path)
    if not any(_within(resolved, directory) for directory in allowed_dirs):
        raise UnsafeChallengePath(raw_path)
    try:
        info = os.stat(resolved)
        if not stat.S_ISREG(info.st_mode):
            raise UnsafeChallengePath(raw_path)
        if info.st_size > MAX_CHALLENGE_BYTES:
            raise AuthenticationFailed(
                AuthFailureReason.CHALLENGE_UNAVAILABLE.value,
                f"Challenge file too large ({info.st_size} bytes)",
            )
        with open(resolved, encoding="utf-8") as handle:
            contents = handle.read(MAX_CHALLENGE_BYTES).strip()
    except (OSError, UnicodeDecodeError) as exc:
        raise AuthenticationFailed(
            AuthFailureReason.CHALLENGE_UNAVAILABLE.value,
            f"Failed to read challenge token file: {exc}",
        ) from exc
    if not contents:
        raise AuthenticationFailed(AuthFailureReason.CHALLENGE_UNAVAILABLE.value, "Challenge token file is empty")
    return contents


def challenge_path(response: HttpResponse) -> str | None:
    """Extract the secret file path from ``WWW-Authenticate: Basic realm=<path>``."""
    value = header_value(response.headers, "WWW-Authenticate")
    if "=" not in value:
        return None
    path = value.split("=", 1)[1].strip().strip('"')
    return path or None


def parse_token_response(response: HttpResponse, resource: str) -> AccessToken | None:
    payload = response.json()
    if not isinstance(payload, dict):
        return None
    token = payload.get("access_token")
    if not isinstance(token, str) or not token:
        return None
    expires_on: int | None
    try:
        expires_on = int(payload["expires_on"]) if payload.get("expires_on") is not None else None
    except (TypeError, ValueError):
        expires_on = None
    return AccessToken(token=token, resource=payload.get("resource") or resource, expires_on=expires_on)


def token_error(response: HttpResponse) -> str | None:
    payload = response.json()
    if not isinstance(payload, dict) or not payload.get("error"):
        return None
    description = payload.get("error_description")
    return f"{payload['error']}: {description}" if description else str(payload["error"])


class TokenProvider:
    """Acquires bearer tokens; the environment is fixed at construction."""

    def __init__(
        self,
        client: HttpClient,
        endpoint: MetadataEndpoint,
        settings: ProbeSettings | None = None,
    ):
        self.client = client
        self.endpoint = endpoint
        self.settings = settings or load_probe_settings()

    @property
    def uses_challenge(self) -> bool:
        return self.endpoint.environment is HostEnvironment.ARC

    def get(self, url: str, authorization: str | None = None, cancel: CancelToken | None = None) -> HttpResponse:
        """One token GET; raises ProbeFailure when the metadata endpoint does not answer."""
        cancel = cancel or CancelToken()
        headers = {"Metadata": "true"}
        if authorization:
            headers["Authorization"] = authorization
        response = self.client.request(
            HttpRequest(url=url, method="GET", headers=headers, timeout=cancel.bound(self.settings.metadata_timeout))
        )
        if response.transport_failed:
            raise ProbeFailure(
                "HTTP",
                f"Metadata endpoint unreachable: {response.error_message or 'no response'}",
                response.category or ErrorCategory.CONNECTION_ERROR,
            )
        return response

    def answer_challenge(self, url: str, response: HttpResponse, cancel: CancelToken | None = None) -> HttpResponse:
        """Read the secret named by the challenge and repeat the request with it."""
        path = challenge_path(response)
        if not path:
            raise AuthenticationFailed(
                AuthFailureReason.CHALLENGE_UNAVAILABLE.value,
                f"No challenge token path in response (HTTP {response.status_code})",
            )
        logger.debug("Reading challenge token from %s", path)
        secret = read_challenge_file(path, self.settings.challenge_dirs)
        return self.get(url, authorization=f"Basic {secret}", cancel=cancel)

    def request_token(
        self,
        credentials: ManagedIdentityCredentials,
        cancel: CancelToken | None = None,
    ) -> HttpResponse:
        """Issue the token request (answering the challenge when required) and return the final response."""
        url = token_request_url(self.endpoint, credentials)
        logger.info("Requesting access token for resource %s", credentials.resource)
        response = self.get(url, cancel=cancel)
        if not self.uses_challenge or parse_token_response(response, credentials.resource) is not None:
            return response
        return self.answer_challenge(url, response, cancel)

    def acquire(
        self,
        credentials: ManagedIdentityCredentials | None = None,
        cancel: CancelToken | None = None,
    ) -> AccessToken:
        """Return a token or raise AuthenticationFailed; transport failures raise ProbeFailure."""
        credentials = credentials or ManagedIdentityCredentials()
        response = self.request_token(credentials, cancel)
        token = parse_token_response(response, credentials.resource)
        if token is None:
            cause = token_error(response) or f"no access_token in response (HTTP {response.status_code})"
            raise AuthenticationFailed(
                AuthFailureReason.TOKEN_ACQUISITION_FAILED.value,
                f"Failed to obtain access token: {cause}",
            )
        logger.info("Access token obtained (%s)", redact(token.token))
        return token


__all__ = [
    "MAX_CHALLENGE_BYTES",
    "TokenProvider",
    "challenge_path",
    "parse_token_response",
    "read_challenge_file",
    "token_error",
    "token_request_url",
]
