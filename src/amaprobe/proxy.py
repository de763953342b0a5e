# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Proxy configuration as an override chain.

Sources are consulted in order (environment, proxy file, agent settings). Each source
contributes only the fields it defines; later sources override earlier ones field by
field.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

ENV_PROXY_KEYS = ("https_proxy", "HTTPS_PROXY")
SETTING_PROXY_ADDRESS = "MDSD_PROXY_ADDRESS"
SETTING_PROXY_USERNAME = "MDSD_PROXY_USERNAME"
SETTING_PROXY_PASSWORD = "MDSD_PROXY_PASSWORD"


@dataclass(frozen=True)
class ProxyConfig:
    """A possibly sparse proxy definition; None means "not set by this source"."""

    address: str | None = None
    username: str | None = None
    password: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.address)

    @property
    def requires_auth(self) -> bool:
        return bool(self.username)

    def override(self, other: ProxyConfig) -> ProxyConfig:
        """Return self with every field ``other`` sets replaced."""
        updates = {f.name: getattr(other, f.name) for f in fields(other) if getattr(other, f.name) is not None}
        return replace(self, **updates) if updates else self

    def host_port(self) -> tuple[str, int] | None:
        """Proxy (host, port) for raw CONNECT tunnels."""
        if not self.address:
            return None
        parts = urlsplit(_with_scheme(self.address))
        if not parts.hostname:
            return None
        try:
            port = parts.port
        except ValueError:
            return None
        return parts.hostname, port or (443 if parts.scheme == "https" else 80)

    def url(self) -> str | None:
        """Proxy URL for HTTP clients, with credentials embedded when present."""
        if not self.address:
            return None
        parts = urlsplit(_with_scheme(self.address))
        netloc = parts.hostname or ""
        if ":" in netloc:
            netloc = f"[{netloc}]"
        try:
            port = parts.port
        except ValueError:
            port = None
        if port:
            netloc = f"{netloc}:{port}"
        if self.username:
            credentials = quote(self.username, safe="")
            if self.password:
                credentials = f"{credentials}:{quote(self.password, safe='')}"
            netloc = f"{credentials}@{netloc}"
        return f"{parts.scheme}://{netloc}"

    def display(self) -> str:
        """Address without credentials, for reports and logs."""
        if not self.address:
            return "None"
        parts = urlsplit(_with_scheme(self.address))
        host = parts.hostname or self.address
        try:
            port = parts.port
        except ValueError:
            port = None
        suffix = f":{port}" if port else ""
        auth = " (authenticated)" if self.requires_auth else ""
        return f"{parts.scheme}://{host}{suffix}{auth}"


def _with_scheme(address: str) -> str:
    return address if "://" in address else f"http://{address}"


def _split_credentials(address: str | None) -> ProxyConfig:
    """Lift ``user:pass@`` out of an address so each field overrides independently."""
    if not address:
        return ProxyConfig()
    parts = urlsplit(_with_scheme(address.strip()))
    if parts.username is None:
        return ProxyConfig(address=address.strip())
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    try:
        port = parts.port
    except ValueError:
        port = None
    netloc = f"{host}:{port}" if port else host
    return ProxyConfig(
        address=f"{parts.scheme}://{netloc}",
        username=unquote(parts.username) or None,
        password=unquote(parts.password) if parts.password is not None else None,
    )


def proxy_from_environment(environ: Mapping[str, str] | None = None) -> ProxyConfig:
    env = os.environ if environ is None else environ
    for key in ENV_PROXY_KEYS:
        value = (env.get(key) or "").strip()
        if value:
            logger.info("Found proxy in environment (%s)", key)
            return _split_credentials(value)
    return ProxyConfig()


def proxy_from_file(path: str | Path | None) -> ProxyConfig:
    """Parse a shell-style KEY=value proxy file with python-dotenv; the file is never executed."""
    if not path:
        return ProxyConfig()
    file_path = Path(path)
    if not file_path.is_file():
        return ProxyConfig()
    try:
        parsed = dotenv_values(file_path, interpolate=False, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read proxy configuration %s: %s", file_path, exc)
        return ProxyConfig()

    values = {key: value or "" for key, value in parsed.items()}
    config = ProxyConfig()
    for key in ENV_PROXY_KEYS:
        if values.get(key):
            config = config.override(_split_credentials(values[key]))
    return config.override(
        _split_credentials(values.get(SETTING_PROXY_ADDRESS)).override(
            ProxyConfig(
                username=values.get(SETTING_PROXY_USERNAME) or None,
                password=values.get(SETTING_PROXY_PASSWORD) or None,
            )
        )
    )


def proxy_from_settings(settings: Mapping[str, str] | None) -> ProxyConfig:
    if not settings:
        return ProxyConfig()
    config = _split_credentials(settings.get(SETTING_PROXY_ADDRESS)).override(
        ProxyConfig(
            username=settings.get(SETTING_PROXY_USERNAME) or None,
            password=settings.get(SETTING_PROXY_PASSWORD) or None,
        )
    )
    if config.address:
        logger.info("Found proxy in agent settings")
    return config


def merge_proxy_sources(*sources: ProxyConfig) -> ProxyConfig:
    merged = ProxyConfig()
    for source in sources:
        merged = merged.override(source)
    return merged


def resolve_proxy(
    *,
    environ: Mapping[str, str] | None = None,
    proxy_file: str | Path | None = None,
    settings: Mapping[str, str] | None = None,
) -> ProxyConfig:
    """Environment first, then the proxy file, then agent settings."""
    return merge_proxy_sources(
        proxy_from_environment(environ),
        proxy_from_file(proxy_file),
        proxy_from_settings(settings),
    )


__all__ = [
    "ProxyConfig",
    "merge_proxy_sources",
    "proxy_from_environment",
    "proxy_from_file",
    "proxy_from_settings",
    "resolve_proxy",
]
