"""
Module 03 - Allocation Validator
Checks a raw allocation list before any tree is built.

Owner: Protocol/Crypto Engineer
Module ID: M03

Every problem is collected; validation never stops at the first one.
Rules applied, in order, per entry:
1. address present and a 0x-prefixed 20-byte hex string
2. address is not the zero address (unless policy allows it)
3. amount is an integer (booleans rejected), strictly positive,
   and within the per-recipient maximum when one is configured
4. address not seen before (case-insensitive); the issue names both indices
List-level rules:
- the list is not empty
- the number of entries does not exceed max_recipients
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from eth_utils import is_hex_address

from core.config.runtime import DEFAULT_MAX_RECIPIENTS, ValidationConfig
from core.merkle.leaf_codec import UINT256_MAX
from core.schemas.allocation import Allocation, ValidationReport
from core.schemas.errors import (
    AllocationIssue,
    AllocationValidationException,
    ErrorCodes,
)


ZERO_ADDRESS = "0x" + "0" * 40


@dataclass(frozen=True)
class ValidationPolicy:
    """Business limits for one validation run."""
    max_recipients: int = DEFAULT_MAX_RECIPIENTS
    max_amount_per_recipient: Optional[int] = None
    allow_zero_address: bool = False

    @classmethod
    def from_config(cls, config: ValidationConfig) -> "ValidationPolicy":
        return cls(
            max_recipients=config.max_recipients,
            max_amount_per_recipient=config.max_amount_per_recipient,
            allow_zero_address=config.allow_zero_address,
        )


def _field(entry: Any, name: str) -> Any:
    if isinstance(entry, Allocation):
        return getattr(entry, name)
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)


def _check_address(index: int, raw: Any, policy: ValidationPolicy) -> tuple[Optional[str], list[AllocationIssue]]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None, [AllocationIssue(
            code=ErrorCodes.MISSING_ADDRESS,
            index=index,
            message=f"Allocation {index} has no address",
        )]

    if not isinstance(raw, str) or not raw.startswith("0x") or not is_hex_address(raw):
        return None, [AllocationIssue(
            code=ErrorCodes.INVALID_ADDRESS,
            index=index,
            message=f"Allocation {index} has an invalid address: {raw!r}",
            address=str(raw),
        )]

    address = raw.lower()
    if address == ZERO_ADDRESS and not policy.allow_zero_address:
        return None, [AllocationIssue(
            code=ErrorCodes.ZERO_ADDRESS,
            index=index,
            message=f"Allocation {index} targets the zero address",
            address=address,
        )]
    return address, []


def _check_amount(index: int, raw: Any, policy: ValidationPolicy, address: Optional[str]) -> tuple[Optional[int], list[AllocationIssue]]:
    # bool is an int subclass; True must not pass as 1
    if isinstance(raw, bool) or not isinstance(raw, int):
        return None, [AllocationIssue(
            code=ErrorCodes.INVALID_AMOUNT,
            index=index,
            message=f"Allocation {index} amount must be an integer, got {raw!r}",
            address=address,
        )]

    if raw <= 0:
        return None, [AllocationIssue(
            code=ErrorCodes.NON_POSITIVE_AMOUNT,
            index=index,
            message=f"Allocation {index} amount must be positive, got {raw}",
            address=address,
        )]

    limit = policy.max_amount_per_recipient
    if limit is None or limit > UINT256_MAX:
        limit = UINT256_MAX
    if raw > limit:
        return None, [AllocationIssue(
            code=ErrorCodes.AMOUNT_EXCEEDS_MAX,
            index=index,
            message=f"Allocation {index} amount {raw} exceeds maximum {limit}",
            address=address,
        )]
    return raw, []


def validate_allocations(
    allocations: Iterable[Any],
    policy: Optional[ValidationPolicy] = None,
) -> ValidationReport:
    """
    Validate a raw allocation list.

    Entries may be Allocation models or mappings with "address" and
    "amount" keys. Amounts must already be integers in base units.

    Returns:
        ValidationReport listing every issue found. total_amount and
        recipient_count cover the well-formed, non-duplicate entries.
    """
    policy = policy or ValidationPolicy()
    entries = list(allocations)
    errors: list[AllocationIssue] = []

    if not entries:
        errors.append(AllocationIssue(
            code=ErrorCodes.EMPTY_ALLOCATIONS,
            message="Allocation list is empty",
        ))
        return ValidationReport(valid=False, errors=errors)

    if len(entries) > policy.max_recipients:
        errors.append(AllocationIssue(
            code=ErrorCodes.TOO_MANY_RECIPIENTS,
            message=(
                f"{len(entries)} allocations exceed the maximum of "
                f"{policy.max_recipients} recipients"
            ),
        ))

    seen: dict[str, int] = {}
    total_amount = 0

    for index, entry in enumerate(entries):
        address, address_issues = _check_address(index, _field(entry, "address"), policy)
        amount, amount_issues = _check_amount(index, _field(entry, "amount"), policy, address)
        errors.extend(address_issues)
        errors.extend(amount_issues)

        if address is None:
            continue

        if address in seen:
            errors.append(AllocationIssue(
                code=ErrorCodes.DUPLICATE_ADDRESS,
                index=index,
                related_index=seen[address],
                address=address,
                message=(
                    f"Allocation {index} duplicates the address of "
                    f"allocation {seen[address]}"
                ),
            ))
            continue

        seen[address] = index
        if amount is not None:
            total_amount += amount

    return ValidationReport(
        valid=not errors,
        errors=errors,
        total_amount=total_amount,
        recipient_count=len(seen),
    )


def require_valid(
    allocations: Iterable[Any],
    policy: Optional[ValidationPolicy] = None,
) -> list[Allocation]:
    """
    Validate and normalize, raising on any issue.

    Returns:
        Allocations with lowercase addresses, in input order

    Raises:
        AllocationValidationException: carrying every issue found
    """
    entries = list(allocations)
    report = validate_allocations(entries, policy)
    if not report.valid:
        raise AllocationValidationException(
            f"Allocation list has {len(report.errors)} error(s)",
            issues=report.errors,
        )
    return [
        Allocation(address=str(_field(e, "address")).lower(), amount=_field(e, "amount"))
        for e in entries
    ]


__all__ = [
    "ZERO_ADDRESS",
    "ValidationPolicy",
    "validate_allocations",
    "require_valid",
]
