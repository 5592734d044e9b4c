"""
Module 09C - CLI Validate Command

Dry-run validation of an allocation file. Nothing is built or stored.

Usage:
    merkledrop validate allocations.json [--decimals 18] [--json]
"""

from __future__ import annotations

import json
import logging
import sys
from argparse import Namespace

from core.schemas.errors import AllocationParseError
from core.validation import validate_allocations
from distributions.parsing import load_allocations
from merkledrop_cli.commands.build import decimals_from_args, policy_from_args


logger = logging.getLogger(__name__)


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VALIDATION_FAILED = 2


def validate_cmd(args: Namespace) -> int:
    """
    Execute the validate command.

    Returns:
        Exit code (0 = valid, 1 = runtime error, 2 = invalid)
    """
    try:
        raw = load_allocations(args.file, decimals_from_args(args))
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except AllocationParseError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_VALIDATION_FAILED

    report = validate_allocations(raw, policy_from_args(args))
    logger.debug(f"Validated {len(raw)} entries: {len(report.errors)} issue(s)")

    if args.json:
        data = report.summary()
        data["errors"] = [issue.model_dump() for issue in report.errors]
        print(json.dumps(data, indent=2))
    else:
        status = "VALID" if report.valid else "INVALID"
        print(f"Status:       {status}")
        print(f"Recipients:   {report.recipient_count}")
        print(f"Total amount: {report.total_amount}")
        for issue in report.errors:
            where = f"[{issue.index}] " if issue.index is not None else ""
            print(f"  {where}{issue.code}: {issue.message}")

    return EXIT_SUCCESS if report.valid else EXIT_VALIDATION_FAILED
