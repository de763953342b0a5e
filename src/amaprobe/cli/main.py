from __future__ import annotations

"""
amaprobe, connectivity and authentication diagnostics for the Azure Monitor Agent.
Copyright (C) 2025  Theori Inc.

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""amaprobe CLI."""

import argparse
import json
import sys
from typing import Any

from ..auth.payload import DEFAULT_LOG_TYPE
from ..config import ProbeSettings, load_probe_settings
from ..errors import AmaProbeError, ConfigurationUnavailable, NoWorkspacesFound
from ..log import setup_logging
from ..models import AuthMethod, AuthOutcome, CloudSuffix, IngestionTarget, SharedKeyCredentials
from ..report import render_report
from ..runtime import ConnectivityDiagnostics

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


def _add_common_options(parser: argparse.ArgumentParser, *, suppress: bool = False) -> None:
    # Subcommand copies use SUPPRESS so they never reset a value given before the subcommand.
    default: Any = argparse.SUPPRESS if suppress else None
    flag_default: Any = argparse.SUPPRESS if suppress else False
    parser.add_argument("--verbose", action="store_true", default=flag_default, help="Enable INFO-level logging")
    parser.add_argument("--config-dir", default=default, help="Directory of DCR configuration chunks")
    parser.add_argument(
        "--json", action="store_true", default=flag_default, help="Output JSON instead of a human-friendly summary"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amaprobe",
        description="Azure Monitor Agent connectivity diagnostics (DNS, TLS, HTTP and ingestion authentication)",
    )
    _add_common_options(parser)
    common = argparse.ArgumentParser(add_help=False)
    _add_common_options(common, suppress=True)
    sub = parser.add_subparsers(dest="command")

    probe = sub.add_parser("probe", parents=[common], help="Probe every endpoint derived from the agent configuration")
    probe.add_argument("--timeout", type=float, help="Deadline for the whole run, in seconds")

    shared = sub.add_parser("send-shared-key", parents=[common], help="Send test data signed with a workspace shared key")
    shared.add_argument("-w", "--workspace-id", required=True, help="Log Analytics workspace ID (GUID)")
    shared.add_argument("-k", "--shared-key", required=True, help="Workspace primary or secondary key (base64)")
    shared.add_argument("-t", "--log-type", default=DEFAULT_LOG_TYPE, help="Custom log type name")
    shared.add_argument("-d", "--data", help="Custom JSON payload")

    token = sub.add_parser("send-token", parents=[common], help="Send test data authenticated with a managed identity token")
    token.add_argument("-w", "--workspace-id", help="Workspace ID (defaults to the first configured workspace)")
    token.add_argument("-r", "--resource", help="Token resource (default: https://api.loganalytics.io)")
    token.add_argument("-t", "--log-type", default=DEFAULT_LOG_TYPE, help="Custom log type name")
    token.add_argument("-d", "--data", help="Custom JSON payload")
    return parser


def _print_json(data: dict[str, Any] | Any) -> None:
    payload = data.to_dict() if hasattr(data, "to_dict") else data
    json.dump(payload, sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")


def _print_outcome(outcome: AuthOutcome) -> None:
    status = f"HTTP {outcome.http_status}" if outcome.http_status is not None else "no response"
    print(f"[amaprobe] {outcome.method.value}: {outcome.classification.value} ({status})")
    if outcome.target:
        print(f"Target: {outcome.target}")
    if outcome.reason:
        print(f"Reason: {outcome.reason.value}")
    if outcome.detail:
        print(f"Detail: {outcome.detail}")
    if outcome.succeeded:
        print("Data should appear in Log Analytics within 5-10 minutes")


def _run_probe(args: argparse.Namespace, diagnostics: ConnectivityDiagnostics) -> int:
    report = diagnostics.diagnose(args.config_dir, timeout=args.timeout)
    if args.json:
        _print_json(report)
    else:
        print(render_report(report))
    return report.exit_code()


def _finish_auth(args: argparse.Namespace, outcome: AuthOutcome) -> int:
    if args.json:
        _print_json(outcome)
    else:
        _print_outcome(outcome)
    return EXIT_OK if outcome.succeeded else EXIT_FAILED


def _run_shared_key(args: argparse.Namespace, diagnostics: ConnectivityDiagnostics) -> int:
    target = IngestionTarget(workspace_id=args.workspace_id, log_type=args.log_type)
    credentials = SharedKeyCredentials(workspace_id=args.workspace_id, shared_key=args.shared_key)
    outcome = diagnostics.authenticate(AuthMethod.SHARED_KEY, credentials, target, args.data)
    return _finish_auth(args, outcome)


def _run_token(args: argparse.Namespace, diagnostics: ConnectivityDiagnostics) -> int:
    workspace_id = args.workspace_id
    suffix = CloudSuffix.PUBLIC
    if not workspace_id or args.config_dir:
        endpoints, _ = diagnostics.load_configuration(args.config_dir)
        workspace_id = workspace_id or endpoints.workspace_ids[0]
        suffix = endpoints.cloud_suffix
    target = IngestionTarget(workspace_id=workspace_id, log_type=args.log_type, cloud_suffix=suffix)
    credentials = diagnostics.managed_identity_credentials(args.resource)
    outcome = diagnostics.authenticate(AuthMethod.MANAGED_IDENTITY_TOKEN, credentials, target, args.data)
    return _finish_auth(args, outcome)


_COMMANDS = {
    "probe": _run_probe,
    "send-shared-key": _run_shared_key,
    "send-token": _run_token,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging("INFO" if args.verbose else None)

    command = args.command or "probe"
    if command == "probe" and not hasattr(args, "timeout"):
        args.timeout = None

    settings: ProbeSettings = load_probe_settings()
    try:
        with ConnectivityDiagnostics(settings) as diagnostics:
            return _COMMANDS[command](args, diagnostics)
    except (ConfigurationUnavailable, NoWorkspacesFound) as exc:
        print(f"[amaprobe] Error: {exc}", file=sys.stderr)
        return EXIT_FATAL
    except ValueError as exc:
        print(f"[amaprobe] Invalid input: {exc}", file=sys.stderr)
        return EXIT_FATAL
    except AmaProbeError as exc:
        print(f"[amaprobe] Error: {exc}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
