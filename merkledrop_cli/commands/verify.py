"""
Module 09C - CLI Verify Command

Verify a claim proof offline, replaying the on-chain check:
leaf = encode_leaf(index, address, amount), folded with the sorted-pair
rule through every sibling, must equal the root.

Usage:
    merkledrop verify --root 0x.. --address 0x.. --amount 100 --index 0 --proof 0x.. 0x..
    merkledrop verify --claims tree.json --address 0x..
"""

from __future__ import annotations

import json
import logging
import sys
from argparse import Namespace
from pathlib import Path
from typing import Any

from core.merkle import MerkleVerifier


logger = logging.getLogger(__name__)


# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_VERIFICATION_FAILED = 2


def claim_from_file(path: str, address: str) -> dict[str, Any] | None:
    """Look up an address in a claims file written by `merkledrop build`."""
    data = json.loads(Path(path).read_text())
    claim = data.get("claims", {}).get(address.lower())
    if claim is None:
        return None
    return {
        "root": data["merkle_root"],
        "leaf_encoding": data.get("leaf_encoding"),
        "index": claim["index"],
        "amount": int(claim["amount"]),
        "proof": claim["proof"],
    }


def verify_cmd(args: Namespace) -> int:
    """
    Execute the verify command.

    Returns:
        Exit code (0 = valid proof, 1 = runtime error, 2 = invalid proof)
    """
    if args.claims:
        try:
            claim = claim_from_file(args.claims, args.address)
        except (OSError, ValueError, KeyError) as e:
            print(f"Error: cannot read claims file: {e}", file=sys.stderr)
            return EXIT_RUNTIME_ERROR
        if claim is None:
            print(f"Error: {args.address} has no claim in {args.claims}", file=sys.stderr)
            return EXIT_VERIFICATION_FAILED
    else:
        missing = [
            name for name in ("root", "amount", "index")
            if getattr(args, name) is None
        ]
        if missing:
            print(f"Error: missing --{', --'.join(missing)} (or use --claims)", file=sys.stderr)
            return EXIT_RUNTIME_ERROR
        claim = {
            "root": args.root,
            "leaf_encoding": None,
            "index": args.index,
            "amount": args.amount,
            "proof": args.proof or [],
        }

    kwargs = {"leaf_encoding": claim["leaf_encoding"]} if claim["leaf_encoding"] else {}
    valid = MerkleVerifier.verify_claim(
        claim["index"],
        args.address,
        claim["amount"],
        claim["proof"],
        claim["root"],
        **kwargs,
    )
    logger.debug(f"Proof for {args.address} at index {claim['index']}: {valid}")

    if args.json:
        print(json.dumps({
            "valid": valid,
            "root": claim["root"],
            "address": args.address.lower(),
            "index": claim["index"],
            "amount": str(claim["amount"]),
        }, indent=2))
    else:
        print("VALID" if valid else "INVALID")

    return EXIT_SUCCESS if valid else EXIT_VERIFICATION_FAILED
