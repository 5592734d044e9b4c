"""
Module 09C - CLI Main Entry Point

Parses command-line arguments and dispatches to subcommands.

Usage:
    python -m merkledrop_cli build <file> [--out PATH] [--decimals N] [--json]
    python -m merkledrop_cli validate <file> [--decimals N] [--json]
    python -m merkledrop_cli verify --root R --address A --amount N --index I --proof P [P ...]
    python -m merkledrop_cli verify --claims tree.json --address A
    python -m merkledrop_cli refresh --db merkledrop.db
    python -m merkledrop_cli config --init

Environment Variables:
    MERKLEDROP_DECIMALS             Default amount scaling for allocation files
    MERKLEDROP_MAX_RECIPIENTS       Maximum recipients per distribution
    MERKLEDROP_ALLOW_ZERO_ADDRESS   Accept the zero address as a recipient
    MERKLEDROP_DB_PATH              SQLite store used by refresh
    MERKLEDROP_LOG_LEVEL            Log level (default: INFO)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Sequence

from merkledrop_cli.commands import build, refresh, validate, verify
from merkledrop_cli.config import load_config, get_default_config_template


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure logging for the CLI."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="merkledrop",
        description="Merkledrop CLI - Build distribution trees, validate allocations and verify claim proofs.",
    )
    parser.add_argument(
        "--version", action="version", version="%(prog)s 0.1.0"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to configuration file (default: ./merkledrop.json or ~/.config/merkledrop/config.json)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (overrides config)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- build command ---
    build_parser = subparsers.add_parser(
        "build",
        help="Build a Merkle tree and claims file from an allocation file",
        description="Validate a CSV/JSON allocation list, compute the root and a proof for every recipient.",
    )
    build_parser.add_argument(
        "file",
        type=str,
        help="Allocation file (.csv with address,amount rows or .json array)",
    )
    build_parser.add_argument(
        "--out", "-o",
        type=str,
        default=None,
        help="Write root and per-address claims JSON to this path",
    )
    build_parser.add_argument(
        "--decimals",
        type=int,
        default=None,
        help="Scale human-readable amounts by 10**decimals (e.g. 18)",
    )
    build_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output machine-readable JSON summary",
    )
    build_parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Print tracebacks on error",
    )
    build_parser.set_defaults(func=build.build_cmd)

    # --- validate command ---
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate an allocation file without building",
        description="Report every address, amount and duplicate problem in an allocation file.",
    )
    validate_parser.add_argument(
        "file",
        type=str,
        help="Allocation file (.csv or .json)",
    )
    validate_parser.add_argument(
        "--decimals",
        type=int,
        default=None,
        help="Scale human-readable amounts by 10**decimals",
    )
    validate_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output machine-readable JSON report",
    )
    validate_parser.set_defaults(func=validate.validate_cmd)

    # --- verify command ---
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify a claim proof against a root",
        description="Replay the on-chain proof check for (index, address, amount).",
    )
    verify_parser.add_argument("--address", type=str, required=True, help="Claimant address")
    verify_parser.add_argument("--root", type=str, default=None, help="Merkle root (0x-prefixed)")
    verify_parser.add_argument("--amount", type=int, default=None, help="Amount in base units")
    verify_parser.add_argument("--index", type=int, default=None, help="Leaf index")
    verify_parser.add_argument(
        "--proof",
        type=str,
        nargs="*",
        default=None,
        help="Sibling hashes, bottom-up",
    )
    verify_parser.add_argument(
        "--claims",
        type=str,
        default=None,
        help="Read root, index, amount and proof from a claims file written by build",
    )
    verify_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output machine-readable JSON result",
    )
    verify_parser.set_defaults(func=verify.verify_cmd)

    # --- refresh command ---
    refresh_parser = subparsers.add_parser(
        "refresh",
        help="Apply time-driven status transitions to a SQLite store",
        description="Move confirmed distributions to active once their window opens and to completed once it ends.",
    )
    refresh_parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="SQLite database path (default: MERKLEDROP_DB_PATH or merkledrop.db)",
    )
    refresh_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output machine-readable JSON result",
    )
    refresh_parser.set_defaults(func=refresh.refresh_cmd)

    # --- config command ---
    config_parser = subparsers.add_parser(
        "config",
        help="Manage CLI configuration",
        description="Initialize or display configuration.",
    )
    config_parser.add_argument(
        "--init",
        action="store_true",
        default=False,
        help="Create a template configuration file",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        default=False,
        help="Show current configuration",
    )
    config_parser.add_argument(
        "--path",
        type=str,
        default="merkledrop.json",
        help="Path for config file (default: merkledrop.json)",
    )
    config_parser.set_defaults(func=config_cmd)

    return parser


def config_cmd(args: argparse.Namespace) -> int:
    """Handle config command."""
    if args.init:
        config_path = Path(args.path)
        if config_path.exists():
            print(f"Error: Config file already exists: {config_path}", file=sys.stderr)
            return EXIT_RUNTIME_ERROR

        config_path.write_text(get_default_config_template())
        print(f"Created configuration file: {config_path}")
        print("\nEdit this file to configure your settings.")
        print("You can also use environment variables (MERKLEDROP_* prefix).")
        return EXIT_SUCCESS

    if args.show:
        config = load_config(Path(args.path) if args.path else None)
        config_dict = {
            "default_decimals": config.default_decimals,
            "validation": {
                "max_recipients": config.max_recipients,
                "allow_zero_address": config.allow_zero_address,
            },
            "log_level": config.log_level,
            "log_file": config.log_file,
            "default_output_format": config.default_output_format,
        }
        print(json.dumps(config_dict, indent=2))
        return EXIT_SUCCESS

    print("Usage: merkledrop config [--init|--show]")
    print("  --init  Create a template configuration file")
    print("  --show  Show current configuration")
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0=success, 1=error, 2=validation or verification failed)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_RUNTIME_ERROR

    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    log_level = args.log_level or config.log_level
    setup_logging(level=log_level, log_file=config.log_file)

    # Attach config to args for commands to use
    args.cli_config = config

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except Exception as e:
        if hasattr(args, "debug") and args.debug:
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
