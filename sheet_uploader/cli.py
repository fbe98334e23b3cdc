"""Command line interface for sheet_uploader package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from . import __version__
from .cli_progress import (
    QueueProgressDisplay,
    human_size,
    render_configuration_summary,
    render_run_summary,
    render_step,
)
from .errors import UploaderError
from .models import ColumnMapping, ServerConfig, UploadConfig, default_mappings
from .orchestrator import UploadOrchestrator
from .services import EventLog, EventLogHandler, ExcelConverter, HTTPTransferClient


ENV_SERVER = "SHEET_UP_SERVER"
ENV_USERNAME = "SHEET_UP_USERNAME"
ENV_PASSWORD = "SHEET_UP_PASSWORD"


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), None)
        if not isinstance(level, int):
            env_level = os.getenv("LOG_LEVEL")
            level = getattr(logging, (env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _parse_mappings(values: Optional[Sequence[str]]) -> List[ColumnMapping]:
    if not values:
        return default_mappings()
    try:
        return [ColumnMapping.parse(value) for value in values]
    except ValueError as exc:
        raise CLIError(str(exc)) from exc


def _resolve_server_config(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig(
        endpoint=args.server or os.getenv(ENV_SERVER, ""),
        username=args.username or os.getenv(ENV_USERNAME, ""),
        password=args.password or os.getenv(ENV_PASSWORD, ""),
    )


def _install_pause_signal(orchestrator: UploadOrchestrator) -> bool:
    """SIGUSR1 toggles pause between files (POSIX only)."""
    sigusr1 = getattr(signal, "SIGUSR1", None)
    if sigusr1 is None:
        return False
    try:
        asyncio.get_running_loop().add_signal_handler(sigusr1, orchestrator.toggle_pause)
    except (NotImplementedError, RuntimeError):
        return False
    return True


async def _run_pipeline(
    server: ServerConfig,
    source: Path,
    target: Path,
    mappings: List[ColumnMapping],
    config: UploadConfig,
    event_log: EventLog,
    retry_failed: bool,
) -> int:
    converter = ExcelConverter()

    render_step(1, 3, f"Scanning {source}")
    scan = converter.scan_directory(source)
    event_log.info(f"Found {scan.file_count} spreadsheets ({human_size(scan.total_size)})")
    if not scan.can_convert(str(target)):
        raise CLIError(f"no spreadsheets found in {source}")

    render_step(2, 3, f"Converting {scan.file_count} files into {target}")
    converted = await converter.convert_files(source, target, mappings)
    event_log.success(f"Converted {len(converted)} files")

    render_step(3, 3, "Uploading")
    async with HTTPTransferClient(config) as client:
        orchestrator = UploadOrchestrator(client, config=config, event_log=event_log)
        display = QueueProgressDisplay().attach(orchestrator)
        if _install_pause_signal(orchestrator):
            logging.getLogger(__name__).info(f"Send SIGUSR1 to pid {os.getpid()} to pause/resume")

        orchestrator.initialize(converted)
        try:
            summary = await orchestrator.run(server)
            if retry_failed and summary.failed:
                event_log.info(f"Retrying {summary.failed} failed files")
                summary = await orchestrator.retry_failed()
        finally:
            display.stop()

    render_run_summary(summary)
    return 0 if summary.failed == 0 else 1


async def _test_connection(server: ServerConfig, config: UploadConfig) -> int:
    if not server.base_url:
        raise CLIError(f"server URL is not set (use --server or {ENV_SERVER})")
    async with HTTPTransferClient(config) as client:
        reachable = await client.test_connection(server.base_url)
    print(f"{server.base_url}: {'reachable' if reachable else 'unreachable'}")
    return 0 if reachable else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sheet-up",
        description="Convert a folder of spreadsheets and upload them to the import service.",
    )
    parser.add_argument("-s", "--server", default=None, help=f"Server URL (default from {ENV_SERVER})")
    parser.add_argument("-u", "--username", default=None, help=f"Account name (default from {ENV_USERNAME})")
    parser.add_argument("-p", "--password", default=None, help=f"Account password (default from {ENV_PASSWORD})")
    parser.add_argument("-i", "--input", type=Path, default=None, help="Folder with source spreadsheets")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Folder for converted spreadsheets")
    parser.add_argument(
        "-v",
        "--only-valid-invention",
        action="store_true",
        help="Ask the server to import only valid invention patents",
    )
    parser.add_argument(
        "-m",
        "--column-mapping",
        dest="column_mappings",
        action="append",
        metavar="MAPPING",
        help="Header rename 'original:mapped' (repeatable)",
    )
    parser.add_argument("--retry-failed", action="store_true", help="Retry failed files once after the run")
    parser.add_argument("--test-connection", action="store_true", help="Only check that the server answers")
    parser.add_argument("--export-log", type=Path, default=None, help="Write the event log to this file")
    parser.add_argument(
        "--inter-item-delay",
        type=float,
        default=UploadConfig.inter_item_delay,
        help="Seconds to wait between files",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument("--version", action="version", version=f"sheet-up {__version__}")
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    server = _resolve_server_config(args)
    config = UploadConfig(
        inter_item_delay=max(args.inter_item_delay, 0.0),
        only_valid_invention=args.only_valid_invention,
    )

    if args.test_connection:
        try:
            return asyncio.run(_test_connection(server, config))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    if args.input is None or args.output is None:
        parser.print_help()
        return 0

    source = Path(args.input).expanduser()
    target = Path(args.output).expanduser()
    if not source.is_dir():
        print(f"ERROR: input folder does not exist: {source}", file=sys.stderr)
        return 1

    try:
        mappings = _parse_mappings(args.column_mappings)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "Server": server.base_url or "(missing)",
            "Username": server.username or "(missing)",
            "Input": str(source),
            "Output": str(target),
            "Only Valid Invention": "yes" if config.only_valid_invention else "no",
            "Column Mappings": len(mappings),
            "Retry Failed": "yes" if args.retry_failed else "no",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    event_log = EventLog()
    # with logging enabled, service warnings and errors also land in the exported log
    mirror = EventLogHandler(event_log, level=logging.WARNING)
    package_logger = logging.getLogger("sheet_uploader")
    if effective_log_mode != "silent":
        package_logger.addHandler(mirror)
    try:
        return asyncio.run(
            _run_pipeline(
                server=server,
                source=source,
                target=target,
                mappings=mappings,
                config=config,
                event_log=event_log,
                retry_failed=args.retry_failed,
            )
        )
    except (CLIError, UploaderError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130
    finally:
        package_logger.removeHandler(mirror)
        if args.export_log is not None:
            try:
                event_log.export(args.export_log)
            except OSError as exc:
                print(f"ERROR: could not export log: {exc}", file=sys.stderr)


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
