"""Command-line entrypoint for ledger sync, refresh, and diagnostics commands."""

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Sequence
from uuid import UUID

from clmm_ledger.adapters import ProviderAdapterError
from clmm_ledger.bootstrap import (
    bootstrap_create_database_health_service,
    bootstrap_create_ledger_sync_orchestrator,
    bootstrap_create_position_reconciler,
    bootstrap_create_sync_run_repository,
)
from clmm_ledger.config import config_load_settings
from clmm_ledger.domain import LedgerError
from clmm_ledger.ledger import ledger_missing_event_from_json

logger = logging.getLogger(__name__)

_POSITION_COMMANDS = (
    "sync-position",
    "refresh-position",
    "import-position",
    "add-missing-events",
    "list-sync-runs",
)


def main(argv: Sequence[str] | None = None) -> None:
    """Run the selected command with validated startup configuration.

    Args:
        argv: Optional argument list; defaults to `sys.argv[1:]`.

    Returns:
        None: Results are printed to stdout as JSON.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with code 1 when a ledger or provider error aborts the command.
    """

    parsed_arguments = main_build_argument_parser().parse_args(argv)
    settings = config_load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if parsed_arguments.command in _POSITION_COMMANDS and parsed_arguments.position_id is None:
        raise SystemExit(f"--position-id is required for `{parsed_arguments.command}`")

    try:
        payload = _main_run_command(parsed_arguments, settings)
    except (LedgerError, ProviderAdapterError) as error:
        logger.error("%s failed: %s: %s", parsed_arguments.command, type(error).__name__, error)
        raise SystemExit(1) from error

    print(json.dumps(payload, default=str, sort_keys=True))


def main_build_argument_parser() -> argparse.ArgumentParser:
    """Build the command-line parser.

    Returns:
        argparse.ArgumentParser: Parser with all runtime commands.
    """

    argument_parser = argparse.ArgumentParser(description="Concentrated-liquidity position ledger runtime entrypoint")
    argument_parser.add_argument(
        "command",
        choices=(*_POSITION_COMMANDS, "check-db"),
        help="`sync-position` syncs one ledger, `refresh-position` reconciles state and rollups, "
        "`import-position` builds the first ledger of a new position, `add-missing-events` records "
        "client-reported events, `list-sync-runs` prints recent runs, `check-db` verifies connectivity",
        type=str,
    )
    argument_parser.add_argument("--position-id", dest="position_id", type=UUID, help="Position identifier")
    argument_parser.add_argument(
        "--full-resync",
        dest="full_resync",
        action="store_true",
        help="Replay from the deployment block for `sync-position`",
    )
    argument_parser.add_argument(
        "--events-file",
        dest="events_file",
        type=Path,
        help="JSON file with a `missingEvents` array for `add-missing-events`",
    )
    argument_parser.add_argument("--limit", dest="limit", type=int, default=20, help="Row limit for `list-sync-runs`")
    return argument_parser


def _main_run_command(parsed_arguments: argparse.Namespace, settings) -> dict[str, Any]:
    command = parsed_arguments.command
    position_id = parsed_arguments.position_id

    if command == "sync-position":
        orchestrator = bootstrap_create_ledger_sync_orchestrator(settings=settings)
        return asdict(orchestrator.job_sync_position(position_id, force_full_resync=parsed_arguments.full_resync))

    if command == "refresh-position":
        return asdict(bootstrap_create_position_reconciler(settings=settings).job_refresh_position(position_id))

    if command == "import-position":
        return asdict(bootstrap_create_position_reconciler(settings=settings).job_import_position(position_id))

    if command == "add-missing-events":
        if parsed_arguments.events_file is None:
            raise SystemExit("--events-file is required for `add-missing-events`")
        events = main_load_missing_events(parsed_arguments.events_file)
        orchestrator = bootstrap_create_ledger_sync_orchestrator(settings=settings)
        pending_count = orchestrator.job_add_missing_events(position_id, events)
        return {"position_id": position_id, "pending_count": pending_count}

    if command == "list-sync-runs":
        runs = bootstrap_create_sync_run_repository(settings=settings).db_sync_run_list(
            position_id=position_id,
            limit=parsed_arguments.limit,
            offset=0,
        )
        return {"runs": [asdict(run) for run in runs]}

    health_service = bootstrap_create_database_health_service(settings=settings)
    try:
        health_status = health_service.db_check_health()
    except ConnectionError as error:
        logger.error("database health check failed for %s", health_service.db_connection_label())
        raise SystemExit(1) from error
    return asdict(health_status)


def main_load_missing_events(events_file: Path) -> list:
    """Read client-reported events from a JSON file.

    Args:
        events_file: Path to a JSON object with a `missingEvents` array.

    Returns:
        list: Parsed missing events.

    Raises:
        ValueError: Raised when the file content is malformed.
    """

    payload = json.loads(events_file.read_text(encoding="utf-8"))
    entries = payload.get("missingEvents") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        raise ValueError("events file must contain a `missingEvents` array")
    return [ledger_missing_event_from_json(entry) for entry in entries]


if __name__ == "__main__":
    main()
