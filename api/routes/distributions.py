"""
Module 09D - Distribution Routes

Public read endpoints and admin lifecycle endpoints for distributions.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_manager, get_reconciler, require_admin
from api.models.requests import ConfirmCommitRequest, CreateDistributionRequest
from api.models.responses import (
    CreateDistributionResponse,
    DistributionListResponse,
    DistributionResponse,
    DistributionView,
    EligibilityResponse,
    LeafListResponse,
    LeafView,
    PageInfo,
    ProofResponse,
    RefreshResponse,
    StatsView,
    SyncResponse,
    UserDistributionView,
    UserDistributionsResponse,
)
from core.schemas.allocation import VaultType
from core.schemas.distribution import DistributionFilters, DistributionStatus
from core.schemas.errors import ErrorCodes, NotFoundException
from distributions import ChainReconciler, DistributionManager, parse_amount


logger = logging.getLogger(__name__)

router = APIRouter(tags=["distributions"])


# =============================================================================
# Public
# =============================================================================

@router.get("/distributions", response_model=DistributionListResponse)
def list_distributions(
    status: Optional[DistributionStatus] = Query(default=None),
    vault_type: Optional[VaultType] = Query(default=None),
    created_from: Optional[datetime] = Query(default=None),
    created_to: Optional[datetime] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    manager: DistributionManager = Depends(get_manager),
) -> DistributionListResponse:
    """List distributions, newest first."""
    result = manager.list_distributions(DistributionFilters(
        status=status,
        vault_type=vault_type,
        created_from=created_from,
        created_to=created_to,
        page=page,
        limit=limit,
    ))
    return DistributionListResponse(
        items=[DistributionView.from_distribution(d) for d in result.items],
        pagination=PageInfo(page=result.page, limit=result.limit, total=result.total, pages=result.pages),
    )


@router.get("/distributions/{distribution_id}", response_model=DistributionResponse)
def get_distribution(
    distribution_id: int,
    manager: DistributionManager = Depends(get_manager),
) -> DistributionResponse:
    """Distribution details with claim statistics."""
    distribution = manager.get_distribution(distribution_id)
    stats = manager.get_distribution_stats(distribution_id)
    return DistributionResponse(
        distribution=DistributionView.from_distribution(distribution),
        stats=StatsView.from_stats(stats),
    )


@router.get(
    "/distributions/{distribution_id}/eligibility/{address}",
    response_model=EligibilityResponse,
)
def check_eligibility(
    distribution_id: int,
    address: str,
    manager: DistributionManager = Depends(get_manager),
) -> EligibilityResponse:
    result = manager.check_eligibility(distribution_id, address)
    return EligibilityResponse(
        eligible=result.eligible,
        reason=result.reason,
        distribution_id=result.distribution_id,
        address=result.address,
        allocation=LeafView.from_leaf(result.allocation) if result.allocation else None,
    )


@router.get(
    "/distributions/{distribution_id}/proof/{address}",
    response_model=ProofResponse,
)
def get_proof(
    distribution_id: int,
    address: str,
    manager: DistributionManager = Depends(get_manager),
) -> ProofResponse:
    """Claim proof for an address. 404 when the address has no allocation."""
    proof = manager.get_proof(distribution_id, address)
    if proof is None:
        raise NotFoundException(
            f"Address {address} has no allocation in distribution {distribution_id}",
            distribution_id=distribution_id,
            address=address,
            code=ErrorCodes.LEAF_NOT_FOUND,
        )
    return ProofResponse(
        distribution_id=proof.distribution_id,
        address=proof.address,
        amount=str(proof.amount),
        index=proof.index,
        leaf_hash=proof.leaf_hash,
        proof=proof.proof,
        root=proof.root,
    )


@router.get("/users/{address}/distributions", response_model=UserDistributionsResponse)
def get_user_distributions(
    address: str,
    manager: DistributionManager = Depends(get_manager),
) -> UserDistributionsResponse:
    items = manager.get_user_distributions(address)
    return UserDistributionsResponse(
        address=address.lower(),
        items=[
            UserDistributionView(
                distribution=DistributionView.from_distribution(item.distribution),
                allocation=LeafView.from_leaf(item.leaf),
            )
            for item in items
        ],
    )


# =============================================================================
# Admin
# =============================================================================

@router.post(
    "/distributions",
    response_model=CreateDistributionResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_distribution(
    request: CreateDistributionRequest,
    manager: DistributionManager = Depends(get_manager),
) -> CreateDistributionResponse:
    """Validate allocations, build the tree and store a pending distribution."""
    allocations = [
        {"address": a.address, "amount": parse_amount(a.amount, request.decimals) if a.amount is not None else None}
        for a in request.allocations
    ]
    result = manager.create_distribution(
        allocations,
        request.vault_type,
        request.duration_days,
        request.metadata,
    )
    return CreateDistributionResponse(
        distribution=DistributionView.from_distribution(result.distribution),
        root=result.root,
        leaf_count=result.leaf_count,
    )


@router.post(
    "/distributions/refresh",
    response_model=RefreshResponse,
    dependencies=[Depends(require_admin)],
)
def refresh_statuses(
    manager: DistributionManager = Depends(get_manager),
) -> RefreshResponse:
    """Persist time-driven transitions (pending -> active -> completed)."""
    changed = manager.refresh_statuses()
    logger.info(f"Refresh changed {len(changed)} distribution(s)")
    return RefreshResponse(changed=[DistributionView.from_distribution(d) for d in changed])


@router.post(
    "/distributions/{distribution_id}/confirm",
    response_model=DistributionResponse,
    dependencies=[Depends(require_admin)],
)
def confirm_commit(
    distribution_id: int,
    request: ConfirmCommitRequest,
    manager: DistributionManager = Depends(get_manager),
) -> DistributionResponse:
    """Record the on-chain commit transaction of a pending distribution."""
    distribution = manager.confirm_commit(
        distribution_id,
        tx_hash=request.tx_hash,
        block_number=request.block_number,
        start_time=request.start_time,
        end_time=request.end_time,
    )
    return DistributionResponse(distribution=DistributionView.from_distribution(distribution))


@router.post(
    "/distributions/{distribution_id}/cancel",
    response_model=DistributionResponse,
    dependencies=[Depends(require_admin)],
)
def cancel_distribution(
    distribution_id: int,
    manager: DistributionManager = Depends(get_manager),
) -> DistributionResponse:
    distribution = manager.cancel_distribution(distribution_id)
    return DistributionResponse(distribution=DistributionView.from_distribution(distribution))


@router.post(
    "/distributions/{distribution_id}/sync",
    response_model=SyncResponse,
    dependencies=[Depends(require_admin)],
)
def sync_distribution(
    distribution_id: int,
    reconciler: ChainReconciler = Depends(get_reconciler),
) -> SyncResponse:
    """Reconcile claim state and status with the chain."""
    result = reconciler.reconcile(distribution_id)
    return SyncResponse(
        changed=result.changed,
        newly_claimed=result.newly_claimed,
        reverted=result.reverted,
        distribution=DistributionView.from_distribution(result.distribution),
    )


@router.get(
    "/distributions/{distribution_id}/leaves",
    response_model=LeafListResponse,
    dependencies=[Depends(require_admin)],
)
def list_leaves(
    distribution_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    manager: DistributionManager = Depends(get_manager),
) -> LeafListResponse:
    result = manager.list_leaves(distribution_id, page=page, limit=limit)
    return LeafListResponse(
        distribution_id=distribution_id,
        items=[LeafView.from_leaf(leaf) for leaf in result.items],
        pagination=PageInfo(page=result.page, limit=result.limit, total=result.total, pages=result.pages),
    )
