# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""TLS handshake capability, direct or through an unauthenticated HTTP CONNECT proxy."""

from __future__ import annotations

import socket
import ssl
from dataclasses import dataclass
from typing import Protocol

_MAX_PROXY_RESPONSE_BYTES = 16 * 1024


class ProxyTunnelError(ConnectionError):
    """The proxy refused or broke the CONNECT tunnel."""


@dataclass(frozen=True)
class TlsHandshake:
    """A completed handshake; ``verified`` is False when only an unverified handshake succeeded."""

    verified: bool
    protocol: str | None = None
    cipher: str | None = None
    verify_error: str | None = None


class TlsConnector(Protocol):
    def handshake(
        self,
        host: str,
        port: int,
        timeout: float,
        proxy: tuple[str, int] | None = None,
    ) -> TlsHandshake:
        """Complete a TLS handshake; raise OSError/ssl.SSLError when no connection is established."""
        ...


def _read_proxy_response(sock: socket.socket) -> bytes:
    data = b""
    while b"\r\n\r\n" not in data:
        chunk = sock.recv(4096)
        if not chunk:
            raise ProxyTunnelError("Proxy closed the connection before answering CONNECT")
        data += chunk
        if len(data) > _MAX_PROXY_RESPONSE_BYTES:
            raise ProxyTunnelError("Proxy CONNECT response too large")
    return data


def open_tunnel(host: str, port: int, proxy: tuple[str, int], timeout: float) -> socket.socket:
    """Open a TCP connection to ``host:port`` through an HTTP CONNECT proxy."""
    sock = socket.create_connection(proxy, timeout=timeout)
    try:
        authority = f"[{host}]:{port}" if ":" in host else f"{host}:{port}"
        request = f"CONNECT {authority} HTTP/1.1\r\nHost: {authority}\r\nProxy-Connection: keep-alive\r\n\r\n"
        sock.sendall(request.encode("ascii"))
        head = _read_proxy_response(sock).split(b"\r\n", 1)[0].decode("iso-8859-1", errors="replace")
        parts = head.split()
        if len(parts) < 2 or not parts[0].startswith("HTTP/") or not parts[1].isdigit():
            raise ProxyTunnelError(f"Invalid proxy status line: {head!r}")
        if not 200 <= int(parts[1]) < 300:
            raise ProxyTunnelError(f"Proxy refused CONNECT: {head}")
        return sock
    except BaseException:
        sock.close()
        raise


class SystemTlsConnector:
    """Handshake with the default trust store, falling back to an unverified handshake to tell
    "no connection" apart from "connection with an untrusted chain"."""

    def _connect(self, host: str, port: int, timeout: float, proxy: tuple[str, int] | None) -> socket.socket:
        if proxy is not None:
            return open_tunnel(host, port, proxy, timeout)
        return socket.create_connection((host, port), timeout=timeout)

    def _handshake(
        self,
        context: ssl.SSLContext,
        host: str,
        port: int,
        timeout: float,
        proxy: tuple[str, int] | None,
    ) -> tuple[str | None, str | None]:
        raw = self._connect(host, port, timeout, proxy)
        with context.wrap_socket(raw, server_hostname=host) as tls_sock:
            cipher = tls_sock.cipher()
            return tls_sock.version(), cipher[0] if cipher else None

    def handshake(
        self,
        host: str,
        port: int,
        timeout: float,
        proxy: tuple[str, int] | None = None,
    ) -> TlsHandshake:
        try:
            protocol, cipher = self._handshake(ssl.create_default_context(), host, port, timeout, proxy)
            return TlsHandshake(verified=True, protocol=protocol, cipher=cipher)
        except ssl.SSLCertVerificationError as exc:
            verify_error = exc.verify_message or str(exc)

        unverified = ssl.create_default_context()
        unverified.check_hostname = False
        unverified.verify_mode = ssl.CERT_NONE
        protocol, cipher = self._handshake(unverified, host, port, timeout, proxy)
        return TlsHandshake(verified=False, protocol=protocol, cipher=cipher, verify_error=verify_error)


__all__ = ["ProxyTunnelError", "SystemTlsConnector", "TlsConnector", "TlsHandshake", "open_tunnel"]
