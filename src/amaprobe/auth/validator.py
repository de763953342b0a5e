# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Authentication validator: shared-key signing, managed identity tokens, and anonymous
reachability checks against the ingestion API.

Each call is a single terminal attempt. Transport failures classify as Unreachable;
a reachable service that refuses credentials classifies as AuthenticationFailed.
"""

from __future__ import annotations

import logging
from typing import Any

from ..cancel import CancelToken
from ..config import ProbeSettings, load_probe_settings
from ..errors import AuthenticationFailed, ErrorCategory, ProbeFailure, error_category_to_reason
from ..http.client import HttpClient
from ..http.models import HttpRequest, HttpResponse
from ..models.auth import (
    AuthClassification,
    AuthFailureReason,
    AuthMethod,
    AuthOutcome,
    IngestionTarget,
    ManagedIdentityCredentials,
    SharedKeyCredentials,
)
from .environment import HostEnvironment, detect_environment, metadata_endpoint
from .imds import TokenProvider, challenge_path, parse_token_response, token_error, token_request_url
from .payload import Payload, build_test_payload, normalize_payload, serialize_payload
from .signing import CONTENT_TYPE, ingestion_url, rfc1123_date, sign_shared_key, validate_workspace_id

logger = logging.getLogger(__name__)

CHECK_RESOURCE = "https://management.azure.com/"

Classified = tuple[AuthClassification, AuthFailureReason | None, str]

_SHARED_KEY_STATUS: dict[int, Classified] = {
    200: (AuthClassification.REACHABLE, None, "Test data accepted"),
    202: (AuthClassification.REACHABLE, None, "Test data accepted"),
    400: (AuthClassification.REJECTED, AuthFailureReason.MALFORMED_PAYLOAD, "Bad request: check data format"),
    401: (AuthClassification.AUTHENTICATION_FAILED, AuthFailureReason.UNAUTHORIZED, "Unauthorized: check workspace ID and key"),
    403: (AuthClassification.AUTHENTICATION_FAILED, AuthFailureReason.FORBIDDEN, "Forbidden: check workspace permissions"),
    413: (AuthClassification.REJECTED, AuthFailureReason.PAYLOAD_TOO_LARGE, "Payload too large"),
    429: (AuthClassification.REJECTED, AuthFailureReason.THROTTLED, "Too many requests: rate limited"),
    500: (AuthClassification.REJECTED, AuthFailureReason.SERVER_ERROR, "Internal server error"),
}

_TOKEN_STATUS: dict[int, Classified] = {
    **_SHARED_KEY_STATUS,
    401: (AuthClassification.AUTHENTICATION_FAILED, AuthFailureReason.TOKEN_INVALID, "Token may be invalid or expired"),
    403: (
        AuthClassification.AUTHENTICATION_FAILED,
        AuthFailureReason.IDENTITY_LACKS_PERMISSION,
        "Managed identity lacks ingestion permission",
    ),
}

_ANONYMOUS_STATUS: dict[int, Classified] = {
    200: (AuthClassification.REACHABLE, None, "Ingestion endpoint accepted the request"),
    202: (AuthClassification.REACHABLE, None, "Ingestion endpoint accepted the request"),
    204: (AuthClassification.REACHABLE, None, "Ingestion endpoint accepted the request"),
    401: (AuthClassification.AUTH_REQUIRED_AS_EXPECTED, None, "Reachable; authentication required as expected"),
    403: (AuthClassification.AUTH_REQUIRED_AS_EXPECTED, None, "Reachable; authentication required as expected"),
}


def classify_status(status: int, table: dict[int, Classified]) -> Classified:
    return table.get(
        status,
        (AuthClassification.UNEXPECTED, AuthFailureReason.UNCLASSIFIED_STATUS, f"Unexpected response (HTTP {status})"),
    )


class AuthenticationValidator:
    """Runs authenticated (or deliberately anonymous) ingestion attempts."""

    def __init__(
        self,
        http_client: HttpClient,
        *,
        metadata_client: HttpClient | None = None,
        settings: ProbeSettings | None = None,
        environment: HostEnvironment | None = None,
        token_provider: TokenProvider | None = None,
    ):
        self.settings = settings or load_probe_settings()
        self.http_client = http_client
        self.metadata_client = metadata_client or http_client
        self.environment = environment or detect_environment(self.settings.arc_marker_path)
        self.token_provider = token_provider or TokenProvider(
            self.metadata_client, metadata_endpoint(self.environment), self.settings
        )

    @property
    def environment_label(self) -> str:
        return "AzureArc" if self.environment is HostEnvironment.ARC else "AzureVM"

    def authenticate(
        self,
        method: AuthMethod,
        credentials: SharedKeyCredentials | ManagedIdentityCredentials | None,
        target: IngestionTarget,
        payload: Payload | dict[str, Any] | str | None = None,
        cancel: CancelToken | None = None,
    ) -> AuthOutcome:
        """
        Run one ingestion attempt.

        Raises ValueError for unusable inputs (non-GUID workspace, undecodable key,
        invalid JSON payload) before any network I/O.
        """
        if method is AuthMethod.SHARED_KEY:
            if not isinstance(credentials, SharedKeyCredentials):
                raise ValueError("Shared-key authentication requires SharedKeyCredentials")
            return self.send_shared_key(credentials, target, payload, cancel)
        if method is AuthMethod.MANAGED_IDENTITY_TOKEN:
            if credentials is not None and not isinstance(credentials, ManagedIdentityCredentials):
                raise ValueError("Token authentication requires ManagedIdentityCredentials")
            return self.send_with_token(credentials, target, payload, cancel)
        return self.check_ingestion_reachability(target, payload, cancel)

    def _post(self, target: IngestionTarget, body: bytes, headers: dict[str, str], cancel: CancelToken) -> HttpResponse:
        url = ingestion_url(target.host)
        logger.info("Sending test data to %s (Log-Type %s)", url, target.log_type)
        return self.http_client.request(
            HttpRequest(
                url=url,
                method="POST",
                headers=headers,
                body=body,
                timeout=cancel.bound(self.settings.http_timeout),
            )
        )

    def _outcome(
        self,
        method: AuthMethod,
        target: IngestionTarget,
        response: HttpResponse,
        table: dict[int, Classified],
    ) -> AuthOutcome:
        if response.transport_failed:
            detail = f"{error_category_to_reason(response.category)}: {response.error_message or 'no response'}"
            logger.warning("Ingestion request to %s failed: %s", target.host, detail)
            return AuthOutcome(
                method,
                AuthClassification.UNREACHABLE,
                None,
                AuthFailureReason.TRANSPORT,
                detail,
                target.host,
            )
        classification, reason, detail = classify_status(response.status_code, table)
        if classification is AuthClassification.UNEXPECTED and response.text:
            detail = f"{detail}: {response.text[:200]}"
        logger.info("Ingestion response from %s: HTTP %s (%s)", target.host, response.status_code, classification.value)
        return AuthOutcome(method, classification, response.status_code, reason, detail, target.host)

    def send_shared_key(
        self,
        credentials: SharedKeyCredentials,
        target: IngestionTarget,
        payload: Payload | dict[str, Any] | str | None = None,
        cancel: CancelToken | None = None,
    ) -> AuthOutcome:
        cancel = cancel or CancelToken()
        workspace_id = validate_workspace_id(credentials.workspace_id)
        records = normalize_payload(payload, build_test_payload(AuthMethod.SHARED_KEY))
        body = serialize_payload(records)
        if cancel.is_set():
            return cancelled_outcome(AuthMethod.SHARED_KEY, target.host)
        date = rfc1123_date()
        headers = {
            "Content-Type": CONTENT_TYPE,
            "Authorization": sign_shared_key(workspace_id, credentials.shared_key, len(body), date),
            "Log-Type": target.log_type,
            "x-ms-date": date,
            "time-generated-field": "TimeGenerated",
        }
        response = self._post(target, body, headers, cancel)
        return self._outcome(AuthMethod.SHARED_KEY, target, response, _SHARED_KEY_STATUS)

    def send_with_token(
        self,
        credentials: ManagedIdentityCredentials | None,
        target: IngestionTarget,
        payload: Payload | dict[str, Any] | str | None = None,
        cancel: CancelToken | None = None,
    ) -> AuthOutcome:
        cancel = cancel or CancelToken()
        method = AuthMethod.MANAGED_IDENTITY_TOKEN
        records = normalize_payload(
            payload, build_test_payload(method, environment=self.environment_label)
        )
        body = serialize_payload(records)
        if cancel.is_set():
            return cancelled_outcome(method, target.host)
        try:
            token = self.token_provider.acquire(credentials, cancel)
        except ProbeFailure as exc:
            return AuthOutcome(method, AuthClassification.UNREACHABLE, None, AuthFailureReason.TRANSPORT, str(exc), target.host)
        except AuthenticationFailed as exc:
            logger.warning("Token acquisition failed: %s", exc)
            return AuthOutcome(method, AuthClassification.AUTHENTICATION_FAILED, None, _reason(exc), str(exc), target.host)

        if cancel.is_set():
            return cancelled_outcome(method, target.host)
        headers = {
            "Content-Type": CONTENT_TYPE,
            "Authorization": f"Bearer {token.token}",
            "Log-Type": target.log_type,
            "x-ms-date": rfc1123_date(),
            "time-generated-field": "TimeGenerated",
        }
        response = self._post(target, body, headers, cancel)
        return self._outcome(method, target, response, _TOKEN_STATUS)

    def check_ingestion_reachability(
        self,
        target: IngestionTarget,
        payload: Payload | dict[str, Any] | str | None = None,
        cancel: CancelToken | None = None,
    ) -> AuthOutcome:
        """POST without credentials; 401/403 prove the endpoint is reachable."""
        cancel = cancel or CancelToken()
        records = normalize_payload(payload, build_test_payload(AuthMethod.SHARED_KEY))
        if cancel.is_set():
            return cancelled_outcome(AuthMethod.ANONYMOUS, target.host)
        headers = {"Content-Type": CONTENT_TYPE, "Log-Type": target.log_type}
        response = self._post(target, serialize_payload(records), headers, cancel)
        return self._outcome(AuthMethod.ANONYMOUS, target, response, _ANONYMOUS_STATUS)

    def check_token_endpoint(self, resource: str = CHECK_RESOURCE, cancel: CancelToken | None = None) -> AuthOutcome:
        """
        Token GET used as a reachability check for the metadata identity endpoint.

        No credentials are intended here: an ``error`` body or an Arc challenge already
        proves the endpoint answers. The challenge is answered only when its secret is
        readable, and failing to read it does not fail the check.
        """
        cancel = cancel or CancelToken()
        method = AuthMethod.MANAGED_IDENTITY_TOKEN
        endpoint = self.token_provider.endpoint.token_url
        if cancel.is_set():
            return cancelled_outcome(method, endpoint)
        url = token_request_url(self.token_provider.endpoint, ManagedIdentityCredentials(resource=resource))
        try:
            response = self.token_provider.get(url, cancel=cancel)
        except ProbeFailure as exc:
            return AuthOutcome(method, AuthClassification.UNREACHABLE, None, AuthFailureReason.TRANSPORT, str(exc), endpoint)

        challenged = self.token_provider.uses_challenge and challenge_path(response) is not None
        if challenged and parse_token_response(response, resource) is None and not cancel.is_set():
            try:
                answered = self.token_provider.answer_challenge(url, response, cancel)
            except (AuthenticationFailed, ProbeFailure) as exc:
                logger.info("Challenge issued but not answered: %s", exc)
            else:
                if parse_token_response(answered, resource) is not None or token_error(answered):
                    response = answered

        if parse_token_response(response, resource) is not None:
            return AuthOutcome(
                method, AuthClassification.REACHABLE, response.status_code, None, "Managed identity token obtained", endpoint
            )
        error = token_error(response)
        if error or challenged:
            cause = error or "challenge issued"
            return AuthOutcome(
                method,
                AuthClassification.AUTH_REQUIRED_AS_EXPECTED,
                response.status_code,
                None,
                f"Token endpoint reachable ({cause})",
                endpoint,
            )
        return AuthOutcome(
            method,
            AuthClassification.UNEXPECTED,
            response.status_code,
            AuthFailureReason.UNCLASSIFIED_STATUS,
            f"Unexpected token endpoint response (HTTP {response.status_code})",
            endpoint,
        )


def cancelled_outcome(method: AuthMethod, target: str | None) -> AuthOutcome:
    """Outcome for a check that the run deadline or a cancel() stopped before it started."""
    return AuthOutcome(
        method,
        AuthClassification.UNREACHABLE,
        None,
        AuthFailureReason.CANCELLED,
        error_category_to_reason(ErrorCategory.CANCELLED),
        target,
    )


def _reason(exc: AuthenticationFailed) -> AuthFailureReason:
    try:
        return AuthFailureReason(exc.reason)
    except ValueError:
        return AuthFailureReason.TOKEN_ACQUISITION_FAILED


__all__ = ["AuthenticationValidator", "CHECK_RESOURCE", "cancelled_outcome", "classify_status"]
