# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe result models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import ErrorCategory
from .endpoints import ProbeTarget


class ProbeStage(str, Enum):
    DNS = "DNS"
    TLS = "TLS"
    HTTP = "HTTP"


class ProbeOutcome(str, Enum):
    PASS = "Pass"
    FAIL = "Fail"
    WARN = "Warn"


@dataclass(frozen=True)
class ProbeResult:
    target: ProbeTarget
    stage: ProbeStage
    outcome: ProbeOutcome
    detail: str = ""
    category: ErrorCategory | None = None
    stages: tuple[ProbeStage, ...] = ()

    @property
    def cancelled(self) -> bool:
        return self.category == ErrorCategory.CANCELLED

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target.host,
            "role": self.target.role.value,
            "name": self.target.display_name,
            "stage": self.stage.value,
            "outcome": self.outcome.value,
            "detail": self.detail,
            "category": self.category.value if self.category else None,
            "stages": [stage.value for stage in self.stages],
        }
