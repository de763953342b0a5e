# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Logging helpers for amaprobe."""

from __future__ import annotations

import logging
import os

DEFAULT_LOG_LEVEL = os.getenv("AMAPROBE_LOG_LEVEL", "WARNING").upper()


def setup_logging(level: str | None = None) -> None:
    """Configure standard logging for CLI/library use."""
    effective_level = (level or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, effective_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def redact(secret: str | None, keep: int = 6) -> str:
    """Return a short, non-reversible preview of a secret for log lines."""
    if not secret:
        return "<empty>"
    if len(secret) <= keep:
        return "***"
    return f"{secret[:keep]}..."


__all__ = ["redact", "setup_logging"]
