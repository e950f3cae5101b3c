# File: apiwizard/cli.py
"""
NexaFlow APIWizard - Command-Line Interface
============================================

Runs the generation workflow non-interactively against an admin service,
using the standard-library ``argparse`` module.

Usage examples::

    # Preview the API for two tables and save the document
    python -m apiwizard --service mysql_db --tables users,orders \\
        --preview-only --output preview.yaml

    # Generate endpoints for every table matching "user"
    python -m apiwizard -S mysql_db --all-tables --search user -v

    # Settings from a file, DELETE enabled as well
    python -m apiwizard -S mysql_db --all-tables --config wizard.yaml \\
        --methods GET,POST,PUT,PATCH,DELETE

Exit codes:
    0  success
    1  validation error
    2  generation error
    4  input/argument error
    5  service error (discovery or preview request failed)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

import yaml

from apiwizard.client import ServiceClient
from apiwizard.coordinator import Coordinator, PreviewOutcome
from apiwizard.errors import ConfigurationError, ExecutionError, WizardError
from apiwizard.models import GenerationResult, WizardStep
from apiwizard.settings import WizardSettings, load_settings
from apiwizard.store import WorkflowStore, provide_store
from apiwizard.validators import ValidationResult, validate_all

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_INPUT_ERROR: int = 4
EXIT_SERVICE_ERROR: int = 5


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root apiwizard logger based on verbosity level.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("apiwizard")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from apiwizard import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="apiwizard",
        description=(
            "NexaFlow APIWizard: REST endpoint generation workflow.\n\n"
            "Discovers the tables of a database service, configures an "
            "endpoint per selected table, previews the OpenAPI document and "
            "asks the admin service to generate the endpoints."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -S mysql_db --tables users,orders --preview-only\n"
            "  %(prog)s -S mysql_db --all-tables --search user -v\n"
            "  %(prog)s -S mysql_db --all-tables -o preview.json\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"NexaFlow APIWizard v{__version__}",
    )

    # --- Required arguments ---
    parser.add_argument(
        "-S", "--service",
        type=str,
        required=True,
        metavar="NAME",
        help="Database service to generate endpoints for.",
    )

    # --- Selection ---
    selection_group = parser.add_argument_group("table selection")
    which = selection_group.add_mutually_exclusive_group(required=True)
    which.add_argument(
        "--tables",
        type=_csv,
        default=None,
        metavar="T1,T2",
        help="Comma-separated table ids to select.",
    )
    which.add_argument(
        "--all-tables",
        action="store_true",
        default=False,
        help="Select every table (matching --search, if given).",
    )
    selection_group.add_argument(
        "--search",
        type=str,
        default="",
        metavar="TEXT",
        help="Filter applied before --all-tables.",
    )

    # --- Settings ---
    settings_group = parser.add_argument_group("settings")
    settings_group.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="Settings file (JSON or YAML).",
    )
    settings_group.add_argument(
        "--base-url",
        type=str,
        default=None,
        metavar="URL",
        help="Override the admin service URL.",
    )
    settings_group.add_argument(
        "--api-key",
        type=str,
        default=None,
        metavar="KEY",
        help="Override the API key.",
    )
    settings_group.add_argument(
        "--methods",
        type=_csv,
        default=None,
        metavar="GET,POST",
        help="HTTP methods to enable on every selected table.",
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--preview-only",
        action="store_true",
        default=False,
        help="Stop after the preview; create nothing.",
    )
    mode_group.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="PATH",
        help="Write the preview document here (.json, .yaml or .yml).",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Settings override builder
# ---------------------------------------------------------------------------


def _build_settings_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Build a settings override dictionary from CLI arguments."""
    overrides: Dict[str, Any] = {}
    if args.base_url is not None:
        overrides["base_url"] = args.base_url
    if args.api_key is not None:
        overrides["api_key"] = args.api_key
    return overrides


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def write_specification(spec: Dict[str, Any], path: Path) -> None:
    """Write the preview document as YAML or JSON, by extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in (".yaml", ".yml"):
        text: str = yaml.safe_dump(spec, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(spec, indent=2, ensure_ascii=False) + "\n"
    path.write_text(text, encoding="utf-8")
    logger.info("Wrote preview document to %s.", path)


def _print_validation(result: ValidationResult) -> None:
    print(f"\n{'='*50}")
    print("  Configuration Validation Report")
    print(f"{'='*50}")
    print(result.format_report())
    print(f"{'='*50}\n")


def _print_generation(result: GenerationResult) -> None:
    stats = result.statistics
    print(f"\n{'='*50}")
    print("  Generation Report")
    print(f"{'='*50}")
    if stats is not None:
        print(f"  Tables:     {stats.tables_processed}")
        print(f"  Endpoints:  {stats.endpoints_generated}")
        print(f"  Schemas:    {stats.schemas_created}")
        print(f"  Duration:   {stats.generation_duration:.0f} ms")
        print(f"  Spec size:  {stats.specification_size} bytes")
    for url in result.endpoint_urls:
        print(f"    ✓ {url}")
    for warning in result.warnings:
        print(f"    ⚠ {warning}")
    print(f"{'='*50}\n")


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


async def run_workflow(
    args: argparse.Namespace,
    settings: WizardSettings,
    client: Optional[Any] = None,
) -> int:
    """
    Drive one workflow run and return the exit code.

    ``client`` replaces the HTTP ``ServiceClient`` (tests pass a fake).
    """
    service_client: Any = client if client is not None else ServiceClient(settings)
    coordinator: Coordinator = Coordinator(service_client, settings)
    try:
        with provide_store(WorkflowStore(coordinator)) as store:
            return await _drive(store, args)
    finally:
        await coordinator.aclose()
        if client is None:
            await service_client.aclose()


async def _drive(store: WorkflowStore, args: argparse.Namespace) -> int:
    store.set_service(args.service)

    # --- Discovery ---
    try:
        tables = await store.discover_tables()
    except (WizardError, ValueError) as exc:
        logger.error("Schema discovery failed: %s", exc)
        return EXIT_SERVICE_ERROR
    logger.info("Service '%s' has %d table(s).", args.service, len(tables))

    # --- Configuration template ---
    if args.methods:
        try:
            store.update_global_default({"enabled_methods": args.methods})
        except (ConfigurationError, ValueError) as exc:
            logger.error("Invalid --methods: %s", exc)
            return EXIT_INPUT_ERROR

    # --- Selection ---
    store.set_search_query(args.search)
    if args.all_tables:
        store.select_all()
    else:
        unknown: List[str] = [t for t in args.tables if t not in store.state.available_tables]
        if unknown:
            logger.error("Unknown table(s): %s", ", ".join(unknown))
            return EXIT_INPUT_ERROR
        for table_id in args.tables:
            if table_id not in store.state.selected_tables:
                store.toggle_table(table_id)

    store.mark_step_completed(WizardStep.TABLE_SELECTION)
    store.mark_step_completed(WizardStep.ENDPOINT_CONFIGURATION)
    store.mark_step_completed(WizardStep.SECURITY_CONFIGURATION)

    result: ValidationResult = validate_all(
        store.state, max_tables=store.settings.max_selected_tables
    )
    if not result.is_valid:
        _print_validation(result)
        return EXIT_VALIDATION_ERROR
    store.go_to_step(WizardStep.PREVIEW_AND_GENERATE)

    # --- Preview ---
    outcome: PreviewOutcome = await store.generate_preview()
    if outcome.error is not None:
        logger.error("Preview failed: %s", outcome.error)
        return EXIT_SERVICE_ERROR
    preview = store.state.preview
    if preview.specification is not None and args.output:
        write_specification(preview.specification, Path(args.output))
    if not preview.is_valid:
        for message in preview.validation_errors:
            print(f"    ✗ {message}")
        return EXIT_VALIDATION_ERROR
    print(f"  ✅ Preview valid for {len(store.state.selected_tables)} table(s).")

    if args.preview_only:
        return EXIT_SUCCESS

    # --- Generation ---
    try:
        generated: GenerationResult = await store.execute_generation()
    except ExecutionError as exc:
        logger.error("Generation failed: %s", exc.message)
        return EXIT_GENERATION_ERROR
    _print_generation(generated)
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
        logging.disable(logging.CRITICAL)
    else:
        verbosity = args.verbose
    _setup_logging(verbosity)

    config_path: Optional[Path] = Path(args.config).resolve() if args.config else None
    try:
        settings: WizardSettings = load_settings(
            config_path, overrides=_build_settings_overrides(args)
        )
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to load settings: %s", exc)
        sys.exit(EXIT_INPUT_ERROR)

    logger.info("Service:  %s", args.service)
    logger.info("Base URL: %s", settings.base_url)

    exit_code: int = asyncio.run(run_workflow(args, settings))
    if exit_code == EXIT_SUCCESS:
        logger.info("Workflow completed successfully.")
    else:
        logger.error("Workflow failed with exit code %d.", exit_code)
    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "run_workflow",
    "write_specification",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_INPUT_ERROR",
    "EXIT_SERVICE_ERROR",
]
