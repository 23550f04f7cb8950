#!/usr/bin/env python3
"""
krabctl - Build orchestration for the krab project
==================================================

Usage:
    python main.py dev          # KRAB_DIR=dev cargo run -p krab
    python main.py test         # KRAB_TEMP_DIR=/tmp/krab cargo test
    python main.py build        # KRAB_DIR=release cargo build --release
    python main.py --list       # Show the command table
    python main.py -n test      # Show what would run, run nothing
    python main.py -C ../krab dev  # Run cargo from another checkout

The exit status is the delegated tool's own exit status.
"""

import argparse
import logging
import shlex
import sys
from pathlib import Path
from typing import List, Optional

# Ensure project root is in path
sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console
from rich.table import Table

from core.dispatcher import Dispatcher, DispatcherConfig, DispatchResult
from core.errors import EXIT_INTERRUPTED, EXIT_USAGE, DispatchError, ErrorHandler, KrabctlError
from infra.config import ConfigManager, DEFAULT_CONFIG_FILE
from infra.logging import configure_logging, get_logger


console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="krabctl",
        description="Run, test or build the krab project",
    )
    parser.add_argument(
        "command",
        nargs="?",
        help="development-run (dev), test-run (test) or release-build (build)",
    )
    parser.add_argument(
        "--list", "-L",
        action="store_true",
        help="List available commands and exit",
    )
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Print what would run without creating directories or spawning",
    )
    parser.add_argument(
        "--config", "-c",
        default=DEFAULT_CONFIG_FILE,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--log-level", "-l",
        default=None,
        choices=LOG_LEVELS,
        help="Console logging level (default WARNING)",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Also write JSON log lines to DIR/krabctl.log",
    )
    parser.add_argument(
        "--directory", "-C",
        default=None,
        metavar="DIR",
        help="Run the tool from DIR (default: current directory)",
    )
    return parser


def print_commands(dispatcher: Dispatcher) -> None:
    """Print the command table."""
    table = Table(title="krabctl commands")
    table.add_column("Command", style="bold cyan", no_wrap=True)
    table.add_column("Short", no_wrap=True)
    table.add_column("Environment", style="yellow")
    table.add_column("Runs", style="green")
    table.add_column("Description", style="dim")

    for cmd in dispatcher.list_commands():
        env = " ".join(f"{k}={v}" for k, v in cmd.env.items())
        runs = shlex.join(dispatcher.executor.build_argv(cmd))
        if cmd.ensure_dirs:
            runs = f"mkdir -p {shlex.join(cmd.ensure_dirs)} && {runs}"
        table.add_row(cmd.name, cmd.id, env, runs, cmd.description)

    console.print(table)


def print_dry_run(result: DispatchResult) -> None:
    """Print the invocation a dry run planned."""
    execution = result.execution
    if execution is None:
        return

    command = result.command
    if command is not None and command.ensure_dirs:
        console.print(f"mkdir -p {shlex.join(command.ensure_dirs)}", highlight=False)

    env = " ".join(f"{k}={shlex.quote(v)}" for k, v in execution.env.items())
    line = shlex.join(execution.argv)
    console.print(f"{env} {line}" if env else line, highlight=False)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    error_handler = ErrorHandler()

    try:
        config = ConfigManager(args.config)
    except KrabctlError as e:
        configure_logging(force=True)
        return error_handler.handle(DispatchError.from_exception(e))

    level_name = (args.log_level or config.get("logging.level") or "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    log_dir = args.log_dir or config.get("logging.dir")
    configure_logging(level=level, force=True)
    logger = get_logger("main")

    try:
        dispatcher = Dispatcher(DispatcherConfig(
            command_map=config.get("command_map"),
            dry_run=args.dry_run,
            cwd=args.directory or config.get("cwd"),
            tool_overrides=config.tool_overrides(),
        ))

        if args.list:
            print_commands(dispatcher)
            return 0

        if not args.command:
            parser.print_usage(sys.stderr)
            return EXIT_USAGE

        # The log directory is created only for a name that resolves
        if log_dir and args.command.strip() in dispatcher.registry:
            configure_logging(level=level, log_dir=log_dir, force=True)

        result = dispatcher.dispatch(args.command)

        if args.dry_run:
            print_dry_run(result)

        return result.exit_code

    except KrabctlError as e:
        return error_handler.handle(DispatchError.from_exception(e))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
