"""
Module 09D - Allocation Routes

Dry-run validation of an allocation list before a distribution is created.
"""

from fastapi import APIRouter, Depends

from api.deps import Services, get_services, require_admin
from api.models.requests import ValidateAllocationsRequest
from api.models.responses import ValidationResponse
from core.validation.allocations import ValidationPolicy, validate_allocations
from distributions import parse_amount


router = APIRouter(tags=["allocations"])


@router.post(
    "/allocations/validate",
    response_model=ValidationResponse,
    dependencies=[Depends(require_admin)],
)
def validate(
    request: ValidateAllocationsRequest,
    services: Services = Depends(get_services),
) -> ValidationResponse:
    """
    Validate allocations without storing anything.

    Always 200: problems are listed in the body.
    """
    allocations = [
        {"address": a.address, "amount": parse_amount(a.amount, request.decimals) if a.amount is not None else None}
        for a in request.allocations
    ]
    report = validate_allocations(allocations, ValidationPolicy.from_config(services.config.validation))
    return ValidationResponse(
        valid=report.valid,
        errors=[issue.model_dump() for issue in report.errors],
        total_amount=str(report.total_amount),
        recipient_count=report.recipient_count,
    )
