"""
Module 09C - CLI Refresh Command

Applies time-driven status transitions to a SQLite distribution store.
Meant to run periodically (cron, systemd timer) next to the API.

Usage:
    merkledrop refresh --db merkledrop.db [--json]
"""

from __future__ import annotations

import json
import logging
import os
import sys
from argparse import Namespace
from pathlib import Path

from distributions import DistributionManager, SQLiteDistributionStore


logger = logging.getLogger(__name__)


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1


def refresh_cmd(args: Namespace) -> int:
    """
    Execute the refresh command.

    Returns:
        Exit code (0 = success, 1 = runtime error)
    """
    db_path = Path(args.db or os.getenv("MERKLEDROP_DB_PATH", "merkledrop.db"))
    if not db_path.exists():
        print(f"Error: database not found: {db_path}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    changed = DistributionManager(SQLiteDistributionStore(db_path)).refresh_statuses()

    logger.debug(f"Refresh of {db_path} changed {len(changed)} distribution(s)")
    if args.json:
        print(json.dumps({
            "changed": [
                {"distribution_id": d.distribution_id, "status": d.status.value}
                for d in changed
            ],
        }, indent=2))
    else:
        print(f"Updated {len(changed)} distribution(s)")
        for d in changed:
            print(f"  #{d.distribution_id}: {d.status.value}")
    return EXIT_SUCCESS
