# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Name-resolution capability."""

from __future__ import annotations

import socket
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Protocol


class Resolver(Protocol):
    def resolve(self, host: str, timeout: float) -> list[str]:
        """Return resolved addresses; raise socket.gaierror or TimeoutError on failure."""
        ...


class SystemResolver:
    """getaddrinfo with a hard timeout (the libc call itself has none)."""

    def resolve(self, host: str, timeout: float) -> list[str]:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="amaprobe-dns")
        try:
            future = executor.submit(socket.getaddrinfo, host, None, 0, socket.SOCK_STREAM)
            records = future.result(timeout=timeout)
        except FuturesTimeout as exc:
            raise TimeoutError(f"DNS lookup for {host} timed out after {timeout:g}s") from exc
        finally:
            executor.shutdown(wait=False)

        addresses: list[str] = []
        for _family, _type, _proto, _canon, sockaddr in records:
            address = str(sockaddr[0])
            if address not in addresses:
                addresses.append(address)
        if not addresses:
            raise socket.gaierror(socket.EAI_NONAME, f"No addresses for {host}")
        return addresses


__all__ = ["Resolver", "SystemResolver"]
