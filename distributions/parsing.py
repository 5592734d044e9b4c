"""
Allocation file parsing.

Turns CSV or JSON allocation files into raw {"address", "amount"} entries
for the validator. Only structural problems raise here; a value that is
present but unusable (bad address, fractional amount) is passed through so
the validator can report it alongside every other issue.
"""

from __future__ import annotations

import csv
import io
import json
from decimal import MAX_EMAX, MIN_EMIN, Context, Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

from core.schemas.errors import AllocationParseError


# Any uint256 value has at most 78 digits, so its adjusted exponent is <= 77
MAX_AMOUNT_EXPONENT = 77


def parse_amount(raw: Any, decimals: Optional[int] = None) -> Any:
    """
    Convert a textual amount to integer base units.

    With decimals set, "1.5" and decimals=18 gives 1500000000000000000.
    Values that do not convert exactly, or that are too large for a uint256,
    are returned unchanged.
    """
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and (decimals is None or raw.bit_length() > 256):
        return raw
    text = str(raw).strip()
    try:
        value = Decimal(text)
    except InvalidOperation:
        return raw
    if not value.is_finite():
        return raw
    if not value:
        return 0
    shift = decimals or 0
    if value.adjusted() + shift > MAX_AMOUNT_EXPONENT:
        return raw
    if shift:
        # scaleb rounds to the context precision; keep every digit
        exact = Context(prec=max(len(value.as_tuple().digits), 1), Emin=MIN_EMIN, Emax=MAX_EMAX)
        value = value.scaleb(shift, exact)
    if value != value.to_integral_value():
        return raw
    return int(value)


def _looks_like_header(row: list[str]) -> bool:
    return any("address" in cell.lower() for cell in row)


def parse_allocations_csv(text: str, decimals: Optional[int] = None) -> list[dict[str, Any]]:
    """
    Parse "address,amount" rows. A first row naming an address column is a header.

    Raises:
        AllocationParseError: a non-blank row without both columns
    """
    rows = list(csv.reader(io.StringIO(text.strip())))
    allocations: list[dict[str, Any]] = []
    start = 1 if rows and _looks_like_header(rows[0]) else 0

    for line_number, row in enumerate(rows[start:], start=start + 1):
        cells = [cell.strip() for cell in row]
        if not any(cells):
            continue
        if len(cells) < 2 or not cells[0] or not cells[1]:
            raise AllocationParseError(
                f"Invalid CSV format at line {line_number}: {','.join(row)}",
                line=line_number,
            )
        allocations.append({
            "address": cells[0],
            "amount": parse_amount(cells[1], decimals),
        })
    return allocations


def parse_allocations_json(data: str | list[Any], decimals: Optional[int] = None) -> list[dict[str, Any]]:
    """
    Parse a JSON array of {"address", "amount"} objects.

    Amounts may be JSON integers or strings; strings keep full precision.

    Raises:
        AllocationParseError: invalid JSON, not an array, or an entry
            missing either field
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise AllocationParseError(f"Invalid JSON: {e.msg}", line=e.lineno) from e

    if not isinstance(data, list):
        raise AllocationParseError("JSON data must be an array")

    allocations: list[dict[str, Any]] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict) or item.get("address") in (None, "") or item.get("amount") in (None, ""):
            raise AllocationParseError(
                f"Invalid allocation at index {index}: missing address or amount"
            )
        allocations.append({
            "address": item["address"],
            "amount": parse_amount(item["amount"], decimals),
        })
    return allocations


def load_allocations(path: str | Path, decimals: Optional[int] = None) -> list[dict[str, Any]]:
    """Load allocations from a .csv or .json file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Allocation file not found: {path}")

    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return parse_allocations_csv(text, decimals)
    if suffix == ".json":
        return parse_allocations_json(text, decimals)
    raise AllocationParseError(f"Unsupported allocation file type: {suffix or path.name}")
