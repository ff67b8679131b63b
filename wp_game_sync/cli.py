"""Command-line interface for wp-game-sync."""

from __future__ import annotations

import argparse
import logging
import os
import shlex
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from .clients import UnauthorizedError
from .config import CATALOG, LIBRARY, MATCHING, TRANSLATE
from .pipelines.context import PipelineContext
from .pipelines.import_pipeline import run_import
from .pipelines.inputs import InputDataError
from .pipelines.reconcile import ReconcileSettings
from .pipelines.sync_pipeline import SyncSettings, run_sync
from .utils import RunPaths

DEFAULT_WP_INPUT = "game_reviews_full.json"
DEFAULT_OVERRIDES = "game_title_overrides.json"


def setup_logging(log_file: Path) -> None:
    """Configure logging to both console and file."""
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Silence verbose HTTP debug logs by default
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    logging.info(f"Logging to file: {log_file}")


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _abs(project_root: Path, p: Path | None) -> Path | None:
    if p is None:
        return None
    return (p if p.is_absolute() else (project_root / p)).resolve()


def _prepare_run_paths(args: argparse.Namespace, *, input_path: Path | None) -> RunPaths:
    """
    Resolve the run dir (input/output/cache/logs) for a command.

    Default run dir is `<repo>/data`. If the input file sits under `<run_dir>/input/`, that run
    dir is used instead.
    """
    project_root = _project_root()
    run_dir = _abs(project_root, getattr(args, "run_dir", None))
    if run_dir is None and input_path is not None:
        inp = input_path.resolve()
        if inp.parent.name == "input":
            run_dir = inp.parent.parent
    run_paths = RunPaths.from_run_dir(run_dir or (project_root / "data"))

    run_paths = replace(
        run_paths,
        cache_dir=_abs(project_root, getattr(args, "cache", None)) or run_paths.cache_dir,
        logs_dir=_abs(project_root, getattr(args, "logs_dir", None)) or run_paths.logs_dir,
        output_dir=_abs(project_root, getattr(args, "output", None)) or run_paths.output_dir,
    )
    run_paths.ensure()
    return run_paths


def _default_log_file(*, command_name: str, logs_dir: Path) -> Path:
    logs_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    stamp = now.strftime("%Y%m%d-%H%M%S") + f".{now.microsecond // 1000:03d}"
    candidate = logs_dir / f"log-{stamp}-{command_name}.log"
    if not candidate.exists():
        return candidate

    for i in range(2, 1000):
        p = logs_dir / f"log-{stamp}-{command_name}-{i}.log"
        if not p.exists():
            return p
    return logs_dir / f"log-{stamp}-{command_name}-{os.getpid()}.log"


def _setup_logging_from_args(
    run_paths: RunPaths,
    log_file: Path | None,
    debug: bool,
    *,
    command_name: str,
) -> None:
    setup_logging(
        log_file or _default_log_file(command_name=command_name, logs_dir=run_paths.logs_dir)
    )
    if debug:
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        for handler in root_logger.handlers:
            handler.setLevel(logging.DEBUG)
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    argv = " ".join(shlex.quote(a) for a in sys.argv)
    logging.info(f"Invocation: {argv}")


def _ms_to_s(value: int | None, default_s: float) -> float:
    if value is None or value <= 0:
        return default_s
    return value / 1000.0


def _input_path(raw: Path | None, run_paths: RunPaths, default_name: str) -> Path:
    return raw if raw is not None else (run_paths.input_dir / default_name)


def _command_import(args: argparse.Namespace) -> None:
    run_paths = _prepare_run_paths(args, input_path=args.input)
    _setup_logging_from_args(run_paths, args.log_file, args.debug, command_name="import")

    input_json = _input_path(args.input, run_paths, DEFAULT_WP_INPUT)
    overrides = args.overrides or (input_json.parent / DEFAULT_OVERRIDES)

    sleep_s = _ms_to_s(args.sleep_ms, CATALOG.sleep_s)
    translate_sleep_s = _ms_to_s(args.translate_sleep_ms, max(TRANSLATE.min_sleep_s, sleep_s))
    ctx = PipelineContext(
        cache_dir=run_paths.cache_dir,
        credentials_path=args.credentials,
        catalog_sleep_s=sleep_s,
        library_sleep_s=sleep_s,
        search_limit=args.search_limit,
        translate=args.translate,
        translate_endpoint=args.translate_endpoint,
        translate_sleep_s=translate_sleep_s,
    )
    settings = ReconcileSettings(
        min_score=args.min_score,
        search_limit=args.search_limit,
        translate=args.translate,
        dry_run=bool(args.dry_run),
    )
    try:
        run_import(
            ctx,
            input_json=input_json,
            output_dir=run_paths.output_dir,
            overrides_path=overrides,
            overrides_required=args.overrides is not None,
            settings=settings,
            start=args.start,
            limit=args.limit,
        )
    except InputDataError as e:
        raise SystemExit(str(e)) from e
    except FileNotFoundError as e:
        raise SystemExit(str(e)) from e
    except UnauthorizedError as e:
        raise SystemExit(f"Unauthorized: {e}") from e


def _command_sync(args: argparse.Namespace) -> None:
    run_paths = _prepare_run_paths(args, input_path=args.wp)
    _setup_logging_from_args(run_paths, args.log_file, args.debug, command_name="sync")

    input_json = _input_path(args.wp, run_paths, DEFAULT_WP_INPUT)
    ctx = PipelineContext(
        cache_dir=run_paths.cache_dir,
        credentials_path=args.credentials,
        library_sleep_s=_ms_to_s(args.sleep_ms, LIBRARY.sync_sleep_s),
        translate=False,
    )
    settings = SyncSettings(dry_run=bool(args.dry_run), placeholders=args.placeholders)
    try:
        run_sync(
            ctx,
            input_json=input_json,
            output_dir=run_paths.output_dir,
            mapping_path=args.mapping,
            settings=settings,
            start=args.start,
            limit=args.limit,
        )
    except InputDataError as e:
        raise SystemExit(str(e)) from e
    except FileNotFoundError as e:
        raise SystemExit(str(e)) from e
    except UnauthorizedError as e:
        raise SystemExit(f"Unauthorized: {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Match legacy WordPress game reviews to IGDB and sync them into a media library"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_common = argparse.ArgumentParser(add_help=False)
    p_common.add_argument(
        "--run-dir",
        type=Path,
        help=(
            "Run directory containing input/output/cache/logs "
            "(default: infer from input, else ./data)"
        ),
    )
    p_common.add_argument("--output", type=Path, help="Output directory (default: <run-dir>/output)")
    p_common.add_argument(
        "--logs-dir", type=Path, help="Override logs directory (default: <run-dir>/logs)"
    )
    p_common.add_argument("--log-file", type=Path, help="Log file path (default: timestamped in logs)")
    p_common.add_argument(
        "--credentials",
        type=Path,
        help="Credentials YAML (default: data/credentials.yaml; ML_API_TOKEN overrides)",
    )
    p_common.add_argument(
        "--dry-run", action="store_true", help="Match and report, but never write to the library"
    )
    p_common.add_argument("--start", type=int, default=1, help="1-based index of the first post")
    p_common.add_argument("--limit", type=int, default=0, help="Max posts to process (0 = all)")
    p_common.add_argument("--debug", action="store_true", help="Enable DEBUG logging (default: INFO)")

    p_import = sub.add_parser(
        "import",
        help="Match posts to IGDB entries and add them to the library",
        parents=[p_common],
    )
    p_import.add_argument(
        "--input", type=Path, help=f"WordPress export JSON (default: <run-dir>/input/{DEFAULT_WP_INPUT})"
    )
    p_import.add_argument(
        "--overrides",
        type=Path,
        help=f"Overrides JSON/YAML keyed by post title or link (default: {DEFAULT_OVERRIDES} next to input)",
    )
    p_import.add_argument("--cache", type=Path, help="Cache directory (default: <run-dir>/cache)")
    p_import.add_argument(
        "--sleep-ms",
        type=int,
        default=int(CATALOG.sleep_s * 1000),
        help="Pause after each search / library write",
    )
    p_import.add_argument(
        "--min-score", type=float, default=MATCHING.min_score, help="Minimum score to accept a match"
    )
    p_import.add_argument(
        "--search-limit", type=int, default=CATALOG.search_limit, help="Candidates per search"
    )
    p_import.add_argument(
        "--translate",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Translate CJK titles into an extra English query",
    )
    p_import.add_argument("--translate-endpoint", type=str, default=TRANSLATE.endpoint)
    p_import.add_argument(
        "--translate-sleep-ms",
        type=int,
        default=None,
        help="Pause after each translation call (default: max(200, --sleep-ms))",
    )
    p_import.set_defaults(_fn=_command_import)

    p_sync = sub.add_parser(
        "sync",
        help="Copy post reviews onto library entries (creating placeholders when missing)",
        parents=[p_common],
    )
    p_sync.add_argument(
        "--wp", type=Path, help=f"WordPress export JSON (default: <run-dir>/input/{DEFAULT_WP_INPUT})"
    )
    p_sync.add_argument(
        "--mapping",
        type=Path,
        help="Import results JSON (default: newest igdb_wp_game_import_*.results.json in output)",
    )
    p_sync.add_argument(
        "--sleep-ms",
        type=int,
        default=int(LIBRARY.sync_sleep_s * 1000),
        help="Pause after each library write",
    )
    p_sync.add_argument(
        "--placeholders",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Create placeholder entries for posts without a library match",
    )
    p_sync.set_defaults(_fn=_command_sync)
    return parser


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        raise SystemExit(
            "Missing command. Use one of: import, sync. Run `wp-game-sync --help` for usage."
        )

    ns = build_parser().parse_args(argv)
    ns._fn(ns)
    return


if __name__ == "__main__":
    main()
