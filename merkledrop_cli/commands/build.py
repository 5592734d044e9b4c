"""
Module 09C - CLI Build Command

Build a distribution tree offline from an allocation file:
- Parse the CSV/JSON allocation list
- Validate it (every issue reported together)
- Compute the root and a proof for every recipient

Usage:
    merkledrop build allocations.csv [--out tree.json] [--decimals 18] [--json]
"""

from __future__ import annotations

import json
import logging
import sys
from argparse import Namespace
from pathlib import Path
from typing import Any

from core.merkle import build_tree, tree_stats, MerkleTree
from core.crypto.hashing import to_hex
from core.schemas.errors import AllocationParseError, AllocationValidationException
from core.validation import ValidationPolicy, require_valid
from distributions.parsing import load_allocations


logger = logging.getLogger(__name__)


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VALIDATION_FAILED = 2


def tree_to_dict(tree: MerkleTree) -> dict[str, Any]:
    """
    Serialize a tree to the claims file layout.

    Claims are keyed by lowercase address; amounts are decimal strings.
    """
    stats = tree_stats(tree)
    claims: dict[str, Any] = {}
    for leaf in tree.leaves:
        claims[leaf.address] = {
            "index": leaf.index,
            "amount": str(leaf.amount),
            "leaf_hash": leaf.leaf_hash_hex,
            "proof": [to_hex(s) for s in tree.proof(leaf.index)],
        }
    return {
        "merkle_root": tree.root_hex,
        "leaf_encoding": tree.leaf_encoding,
        "total_amount": str(stats.total_amount),
        "recipient_count": stats.recipient_count,
        "tree_depth": stats.tree_depth,
        "claims": claims,
    }


def policy_from_args(args: Namespace) -> ValidationPolicy:
    """Validation policy from CLI config, when main() attached one."""
    cli_config = getattr(args, "cli_config", None)
    if cli_config is None:
        return ValidationPolicy()
    return ValidationPolicy(
        max_recipients=cli_config.max_recipients,
        allow_zero_address=cli_config.allow_zero_address,
    )


def decimals_from_args(args: Namespace) -> int | None:
    if args.decimals is not None:
        return args.decimals
    cli_config = getattr(args, "cli_config", None)
    return cli_config.default_decimals if cli_config is not None else None


def print_issues(exc: AllocationValidationException) -> None:
    print(f"Validation failed: {exc.message}", file=sys.stderr)
    for issue in exc.issues:
        where = f"[{issue.index}] " if issue.index is not None else ""
        print(f"  {where}{issue.code}: {issue.message}", file=sys.stderr)


def build_cmd(args: Namespace) -> int:
    """
    Execute the build command.

    Returns:
        Exit code (0 = built, 1 = runtime error, 2 = invalid allocations)
    """
    try:
        raw = load_allocations(args.file, decimals_from_args(args))
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except AllocationParseError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_VALIDATION_FAILED

    try:
        allocations = require_valid(raw, policy_from_args(args))
    except AllocationValidationException as e:
        print_issues(e)
        return EXIT_VALIDATION_FAILED

    tree = build_tree(allocations)
    logger.info(f"Built tree for {len(tree.leaves)} recipients, root {tree.root_hex}")
    output = tree_to_dict(tree)

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(output, indent=2))

    if args.json:
        summary = {k: v for k, v in output.items() if k != "claims"}
        if args.out:
            summary["out"] = str(args.out)
        print(json.dumps(summary, indent=2))
    else:
        print(f"Merkle root:  {output['merkle_root']}")
        print(f"Recipients:   {output['recipient_count']}")
        print(f"Total amount: {output['total_amount']}")
        print(f"Tree depth:   {output['tree_depth']}")
        if args.out:
            print(f"Claims written to: {args.out}")

    return EXIT_SUCCESS
