# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Routing (DCR) record models."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum


class RecordKind(str, Enum):
    CHANNEL = "Channel"
    AGENT_SETTINGS = "AgentSettings"


class ChannelProtocol(str, Enum):
    ODS = "ods"
    ME = "me"
    OTHER = "other"

    @classmethod
    def parse(cls, value: object) -> ChannelProtocol:
        raw = str(value or "").strip().lower()
        for member in (cls.ODS, cls.ME):
            if raw == member.value:
                return member
        return cls.OTHER


@dataclass(frozen=True)
class RoutingRecord:
    """
    One parsed configuration unit.

    Channel records carry a protocol and endpoints; AgentSettings records carry only
    name/value pairs.
    """

    kind: RecordKind
    protocol: ChannelProtocol | None = None
    endpoint_url: str | None = None
    token_endpoint_url: str | None = None
    settings: tuple[tuple[str, str], ...] = ()
    source: str | None = None

    @classmethod
    def channel(
        cls,
        protocol: ChannelProtocol,
        endpoint_url: str | None = None,
        token_endpoint_url: str | None = None,
        *,
        source: str | None = None,
    ) -> RoutingRecord:
        return cls(
            kind=RecordKind.CHANNEL,
            protocol=protocol,
            endpoint_url=endpoint_url or None,
            token_endpoint_url=token_endpoint_url or None,
            source=source,
        )

    @classmethod
    def agent_settings(cls, settings: Iterable[tuple[str, str]], *, source: str | None = None) -> RoutingRecord:
        return cls(kind=RecordKind.AGENT_SETTINGS, settings=tuple(settings), source=source)


class AgentSettingsMap(Mapping[str, str]):
    """Setting name -> value, merged across AgentSettings records (last write wins)."""

    def __init__(self, items: Iterable[tuple[str, str]] | None = None):
        self._values: dict[str, str] = {}
        if items:
            self.merge(items)

    def merge(self, items: Iterable[tuple[str, str]]) -> None:
        for name, value in items:
            if not name:
                continue
            self._values[name] = value

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"AgentSettingsMap({sorted(self._values)!r})"


@dataclass(frozen=True)
class MalformedFile:
    """A configuration file that was skipped."""

    path: str
    message: str


@dataclass
class ConfigurationLoad:
    """Everything the configuration reader produced for one directory."""

    records: list[RoutingRecord] = field(default_factory=list)
    settings: AgentSettingsMap = field(default_factory=AgentSettingsMap)
    files_loaded: list[str] = field(default_factory=list)
    malformed: list[MalformedFile] = field(default_factory=list)
