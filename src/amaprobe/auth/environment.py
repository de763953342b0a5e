# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Host environment detection: Azure VM (IMDS) or Arc-enabled server (local HIMDS)."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class HostEnvironment(str, Enum):
    AZURE_VM = "AzureVM"
    ARC = "Arc"


@dataclass(frozen=True)
class MetadataEndpoint:
    """Where token and instance metadata requests go for a given environment."""

    environment: HostEnvironment
    host: str
    port: int
    token_api_version: str

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}" if self.port != 80 else f"http://{self.host}"

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/metadata/identity/oauth2/token"


AZURE_VM_METADATA = MetadataEndpoint(HostEnvironment.AZURE_VM, "169.254.169.254", 80, "2018-02-01")
ARC_METADATA = MetadataEndpoint(HostEnvironment.ARC, "127.0.0.1", 40342, "2019-11-01")
ARC_AGENT_COMMAND = "azcmagent"


def detect_environment(marker_path: str | Path, *, agent_command: str | None = ARC_AGENT_COMMAND) -> HostEnvironment:
    """Arc when the Connected Machine agent config exists or its CLI is installed."""
    if Path(marker_path).exists():
        logger.info("Detected Azure Arc environment (%s)", marker_path)
        return HostEnvironment.ARC
    if agent_command and shutil.which(agent_command):
        logger.info("Detected Azure Arc environment (%s on PATH)", agent_command)
        return HostEnvironment.ARC
    logger.info("Detected Azure VM environment")
    return HostEnvironment.AZURE_VM


def metadata_endpoint(environment: HostEnvironment) -> MetadataEndpoint:
    return ARC_METADATA if environment is HostEnvironment.ARC else AZURE_VM_METADATA


__all__ = [
    "ARC_METADATA",
    "AZURE_VM_METADATA",
    "HostEnvironment",
    "MetadataEndpoint",
    "detect_environment",
    "metadata_endpoint",
]
