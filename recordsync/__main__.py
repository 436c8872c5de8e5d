"""CLI entry point for recordsync."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .config import Config, load_config
from .errors import RecordSyncError
from .sync import SyncContext


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        # Safe JSON serialization
        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            # Fallback for non-serializable objects
            log_data["message"] = str(log_data["message"])
            if "exception" in log_data:
                log_data["exception"] = str(log_data["exception"])
            return json.dumps(log_data)


def setup_logging(
    verbose: bool = False,
    log_level: str | None = None,
    json_output: bool = False,
) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    # Configure handler with appropriate formatter
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )


def _parse_pairs(pairs: list[str] | None) -> dict[str, Any]:
    """Parse key=value arguments, decoding JSON values where possible."""
    result: dict[str, Any] = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ValueError(f"Expected key=value, got '{pair}'")
        key, raw = pair.split("=", 1)
        try:
            result[key] = json.loads(raw)
        except json.JSONDecodeError:
            result[key] = raw
    return result


def _parse_id(raw: str) -> Any:
    return int(raw) if raw.isdigit() else raw


async def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Check remote connectivity and show configuration."""
    context = SyncContext(config)
    try:
        await context.init()
        reachable = await context.adapter.health_check()
    finally:
        await context.teardown()

    status_data = {
        "timestamp": datetime.now().isoformat(),
        "remote": {
            "url": config.remote.url,
            "reachable": reachable,
            "timeout": config.remote.timeout,
            "max_retries": config.remote.max_retries,
        },
        "store": {"cache_policy": config.store.cache_policy},
        "debug": config.debug,
        "entities": [
            {
                "entity": schema.entity,
                "singular": schema.singular,
                "fields": schema.attribute_names,
                "relations": schema.relation_names,
            }
            for schema in context.registry
        ],
    }

    if args.json:
        print(json.dumps(status_data, indent=2))
        return 0

    print("recordsync Status Check")
    print("=======================")
    print(f"Remote ({config.remote.url}):")
    print(f"  Status: {'Reachable' if reachable else 'Not reachable'}")
    print()
    print(f"Cache policy: {config.store.cache_policy}")
    print(f"Debug: {'on' if config.debug else 'off'}")
    print()
    print("Entities:")
    if not status_data["entities"]:
        print("  none declared (add an 'entities' section to the config file)")
    for entity in status_data["entities"]:
        print(f"  - {entity['entity']} ({entity['singular']})")
        print(f"      fields: {', '.join(entity['fields'])}")
        if entity["relations"]:
            print(f"      relations: {', '.join(entity['relations'])}")

    return 0


async def cmd_fetch(args: argparse.Namespace, config: Config) -> int:
    """Fetch records from the remote and print them."""
    async with SyncContext(config) as context:
        model = context.model(args.entity)
        if args.id is not None:
            target: Any = _parse_id(args.id)
        else:
            target = _parse_pairs(args.where)
        records = await model.fetch(target, bypass_cache=args.bypass_cache)
        print(json.dumps([r.to_dict() for r in records], indent=2, default=str))
    return 0


async def cmd_mutate(args: argparse.Namespace, config: Config) -> int:
    """Run a custom mutation and print its raw result."""
    async with SyncContext(config) as context:
        model = context.model(args.entity)
        result = await model.mutate(args.name, _parse_pairs(args.arg))
        print(json.dumps(result.data, indent=2, default=str))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="recordsync",
        description="Local-first record synchronization against a remote service",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: none, built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        dest="json_logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Status command
    status_parser = subparsers.add_parser("status", help="Check remote connectivity")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    # Fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Fetch records from the remote")
    fetch_parser.add_argument("entity", help="Entity name (e.g. users)")
    fetch_parser.add_argument("id", nargs="?", default=None, help="Record identity")
    fetch_parser.add_argument(
        "-w", "--where",
        action="append",
        metavar="KEY=VALUE",
        help="Field equality filter (repeatable)",
    )
    fetch_parser.add_argument(
        "--bypass-cache",
        action="store_true",
        help="Always query the remote",
    )
    fetch_parser.set_defaults(func=cmd_fetch)

    # Mutate command
    mutate_parser = subparsers.add_parser("mutate", help="Run a custom mutation")
    mutate_parser.add_argument("entity", help="Entity name (e.g. users)")
    mutate_parser.add_argument("name", help="Mutation name")
    mutate_parser.add_argument(
        "-a", "--arg",
        action="append",
        metavar="KEY=VALUE",
        help="Mutation argument (repeatable, JSON values accepted)",
    )
    mutate_parser.set_defaults(func=cmd_mutate)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    log_level = args.log_level or config.logging.level
    verbose = args.verbose or config.debug
    setup_logging(verbose, log_level, args.json_logs or config.logging.json)

    try:
        return asyncio.run(args.func(args, config))
    except (RecordSyncError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
