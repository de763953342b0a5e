# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Run-wide cancellation signal with an optional deadline."""

from __future__ import annotations

import threading
import time

from .errors import Cancelled


class CancelToken:
    """Thread-safe cancellation flag; fires on cancel() or once the deadline passes."""

    def __init__(self, timeout: float | None = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout and timeout > 0 else None

    def cancel(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def bound(self, timeout: float) -> float:
        """Clamp a per-operation timeout to the time left before the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return max(0.001, min(timeout, remaining))

    def wait(self, timeout: float | None = None) -> bool:
        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        return self._event.wait(timeout) or self.is_set()

    def raise_if_set(self) -> None:
        if self.is_set():
            raise Cancelled("Run cancelled")


__all__ = ["CancelToken"]
