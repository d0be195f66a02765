#!/usr/bin/env python3
"""Command-line interface for Met Explorer.

Drives the explorer controller against the live Met collection API, with a
host shell that logs whatever would be published to a model context.

Commands:
- search: search the collection and show one page of hydrated results
- object: show one object's details
- departments: list the museum's departments
- validate: validate configuration
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from met_explorer.core.config import LOG_LEVELS, Config, get_config
from met_explorer.core.data_models import SearchRequest
from met_explorer.core.logging_setup import configure_logging, setup_performance_logging
from met_explorer.core.orchestrator import ExplorerController
from met_explorer.core.outcomes import MetApiError
from met_explorer.core.rate_limiter import RateLimitConfig, RateLimiter, set_rate_limiter
from met_explorer.integrations.met_api import MetMuseumAPI
from met_explorer.publishing.host import LoggingHostShell
from met_explorer.utils.formatters import (
    format_cards_table,
    format_departments,
    format_object_details,
)


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Met Explorer CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  met-explorer search "sunflowers" --has-images
  met-explorer search cat --department 6 --page 2
  met-explorer object 436524 --add
  met-explorer departments
  met-explorer validate --strict
        """,
    )
    parser.add_argument("--config", help="Path to a YAML or TOML configuration file")
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: console only)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: from configuration)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Use JSON structured logging format",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Search
    search_parser = subparsers.add_parser("search", help="Search the collection")
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument("--page", type=int, default=1, help="Results page (default: 1)")
    search_parser.add_argument(
        "--has-images", action="store_true", help="Only objects with images"
    )
    search_parser.add_argument("--title", action="store_true", help="Match titles only")
    search_parser.add_argument("--department", type=int, help="Restrict to a department ID")
    search_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # Object
    object_parser = subparsers.add_parser("object", help="Show one object's details")
    object_parser.add_argument("object_id", type=int, help="Met object ID")
    object_parser.add_argument(
        "--add", action="store_true", help="Also add the object to the model context"
    )
    object_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # Departments
    departments_parser = subparsers.add_parser("departments", help="List departments")
    departments_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # Validate
    validate_parser = subparsers.add_parser("validate", help="Validate configuration")
    validate_parser.add_argument(
        "--strict", action="store_true", help="Exit with error if validation fails"
    )

    return parser.parse_args(argv)


def build_controller(config: Config, log_dir: Optional[Path] = None) -> ExplorerController:
    """Wire a controller with the configured rate limit and a logging host."""
    set_rate_limiter(
        RateLimiter(
            RateLimitConfig(
                max_calls_per_window=config.get_int("api.rate_limit_per_second", 80),
                window_seconds=config.get_float("api.window_seconds", 1.0),
            )
        )
    )
    performance = setup_performance_logging(log_dir) if log_dir is not None else None
    return ExplorerController.from_config(
        LoggingHostShell(),
        config=config,
        api=MetMuseumAPI.from_config(config),
        performance=performance,
    )


async def main_async(args: argparse.Namespace) -> int:
    """Main async entry point.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    config = get_config(args.config)

    level_name = args.log_level or str(config.get("logging.level", "INFO")).upper()
    configure_logging(
        log_file=args.log_dir / "met_explorer.log" if args.log_dir else None,
        level=getattr(logging, level_name, logging.INFO),
        use_json=args.json_logs,
    )
    logger = logging.getLogger(__name__)
    logger.debug("Met Explorer CLI started with command: %s", args.command)

    if args.command == "validate":
        return await handle_validate(args, config)

    handler = CONTROLLER_COMMANDS[args.command]
    controller = build_controller(config, args.log_dir)
    try:
        return await handler(args, controller)
    finally:
        await controller.api.close()


async def handle_search(args: argparse.Namespace, controller: ExplorerController) -> int:
    """Handle the search command."""
    try:
        request = SearchRequest(
            q=args.query,
            has_images=args.has_images,
            title=args.title,
            department_id=args.department,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    await controller.run_search(request, page=args.page)

    state = controller.state
    if args.json:
        output = {
            "request": request.to_dict(),
            "page": state.current_page,
            "totalPages": state.total_pages,
            "totalResults": state.total_results,
            "results": [card.to_dict() for card in state.results],
            "status": state.status.message,
        }
        print(json.dumps(output, indent=2))
    else:
        print(
            f'Results for "{request.q}": page {state.current_page} of '
            f"{max(state.total_pages, 1)} ({state.total_results} total)"
        )
        print(format_cards_table(state.results))
        print()
        print(state.status.message)

    return 1 if state.status.is_error else 0


async def handle_object(args: argparse.Namespace, controller: ExplorerController) -> int:
    """Handle the object command."""
    await controller.load_object_details(args.object_id, with_image=args.add)

    state = controller.state
    record = state.selected_object
    if record is None:
        print(state.status.message, file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(record.model_dump(by_alias=True), indent=2))
    else:
        print(format_object_details(record))

    if args.add:
        await controller.add_selected_object_to_context()
        print()
        print(state.status.message)
        if state.status.is_error:
            return 1

    return 0


async def handle_departments(args: argparse.Namespace, controller: ExplorerController) -> int:
    """Handle the departments command."""
    try:
        departments = await controller.api.list_departments()
    except MetApiError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([d.model_dump(by_alias=True) for d in departments], indent=2))
    else:
        print(format_departments(departments))

    return 0


async def handle_validate(args: argparse.Namespace, config: Config) -> int:
    """Handle the validate command."""
    result = config.validate()

    print(result)

    if args.strict and not result.is_valid:
        return 1

    return 0


CONTROLLER_COMMANDS = {
    "search": handle_search,
    "object": handle_object,
    "departments": handle_departments,
}


def main() -> None:
    args = parse_args(sys.argv[1:])
    try:
        exit_code = asyncio.run(main_async(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nAborted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
