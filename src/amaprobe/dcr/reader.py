# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration reader: cached DCR chunks -> RoutingRecords + AgentSettingsMap."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from ..errors import ConfigurationMalformed, ConfigurationUnavailable
from ..models.routing import (
    ChannelProtocol,
    ConfigurationLoad,
    MalformedFile,
    RecordKind,
    RoutingRecord,
)

logger = logging.getLogger(__name__)


def _coerce_setting_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, sort_keys=True)


def decode_settings(raw: Any, *, path: str = "<settings>") -> list[tuple[str, str]]:
    """
    Decode an AgentSettings ``settings`` field into name/value pairs.

    The field is either a nested array of ``{name, value}`` objects or that array
    JSON-encoded into a string. Entries without a name are dropped.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ConfigurationMalformed(path, f"settings is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise ConfigurationMalformed(path, f"settings must be an array, got {type(raw).__name__}")

    pairs: list[tuple[str, str]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            continue
        pairs.append((name, _coerce_setting_value(item.get("value"))))
    return pairs


def parse_channels(document: dict[str, Any], *, source: str | None = None) -> list[RoutingRecord]:
    """Decode every channel entry carrying a protocol; others are ignored."""
    channels = document.get("channels")
    if not isinstance(channels, list):
        return []
    records: list[RoutingRecord] = []
    for entry in channels:
        if not isinstance(entry, dict) or entry.get("protocol") is None:
            continue
        endpoint = entry.get("endpoint")
        token_endpoint = entry.get("tokenEndpointUri")
        records.append(
            RoutingRecord.channel(
                ChannelProtocol.parse(entry.get("protocol")),
                endpoint if isinstance(endpoint, str) else None,
                token_endpoint if isinstance(token_endpoint, str) else None,
                source=source,
            )
        )
    return records


def _iter_candidate_files(directory: Path) -> Iterator[Path]:
    for entry in sorted(directory.iterdir()):
        if entry.is_file():
            yield entry


def _load_document(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationMalformed(str(path), f"unreadable: {exc}") from exc
    try:
        document = json.loads(text)
    except ValueError as exc:
        raise ConfigurationMalformed(str(path), f"invalid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise ConfigurationMalformed(str(path), f"expected a JSON object, got {type(document).__name__}")
    return document


def read_configuration(path: str | Path) -> ConfigurationLoad:
    """
    Read every JSON document directly inside ``path`` (non-recursive).

    Malformed files are skipped and recorded. Raises ConfigurationUnavailable when the
    directory is missing or no file parses.
    """
    directory = Path(path)
    if not directory.is_dir():
        raise ConfigurationUnavailable(f"Configuration directory not found: {directory}")

    load = ConfigurationLoad()
    for file_path in _iter_candidate_files(directory):
        source = str(file_path)
        try:
            document = _load_document(file_path)
        except ConfigurationMalformed as exc:
            logger.warning("Skipping configuration file %s: %s", file_path.name, exc.message)
            load.malformed.append(MalformedFile(path=exc.path, message=exc.message))
            continue

        load.files_loaded.append(source)
        if document.get("kind") == RecordKind.AGENT_SETTINGS.value:
            try:
                pairs = decode_settings(document.get("settings"), path=source)
            except ConfigurationMalformed as exc:
                logger.warning("Ignoring AgentSettings in %s: %s", file_path.name, exc.message)
                load.malformed.append(MalformedFile(path=exc.path, message=exc.message))
                continue
            logger.info("Loaded %d agent setting(s) from %s", len(pairs), file_path.name)
            load.settings.merge(pairs)
            load.records.append(RoutingRecord.agent_settings(pairs, source=source))
            continue

        channels = parse_channels(document, source=source)
        if not channels:
            logger.info("No channels found in %s", file_path.name)
        load.records.extend(channels)

    if not load.files_loaded:
        raise ConfigurationUnavailable(f"No valid configuration files in {directory}")

    logger.info("Parsed %d configuration file(s) from %s", len(load.files_loaded), directory)
    return load


__all__ = ["decode_settings", "parse_channels", "read_configuration"]
