"""
Module 01 - Schemas & Errors
File: chain.py

Purpose: Typed views of on-chain state consumed by reconciliation.

Raw event payloads (decoded logs as delivered by a node client or an
indexer) are checked at the boundary by decode_chain_event(): the
"event" tag selects exactly one typed model, unknown tags and malformed
fields raise ChainEventDecodeException instead of leaking loosely typed
dicts into the domain.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from .allocation import VaultType
from .errors import ChainEventDecodeException
from .timestamps import ensure_utc


_HASH_PATTERN = r"^0x[0-9a-fA-F]{64}$"
_ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"


class TimingWindow(BaseModel):
    """Claim window as enforced by the contract."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _ordered(self) -> "TimingWindow":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class ClaimRecord(BaseModel):
    """On-chain evidence that one leaf has been claimed."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    index: int = Field(..., ge=0)
    claimed_at: datetime | None = None
    tx_hash: str | None = Field(default=None, pattern=_HASH_PATTERN)

    @field_validator("claimed_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


# =============================================================================
# Chain events (tagged variants)
# =============================================================================

class _EventBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    transaction_hash: str = Field(..., alias="transactionHash", pattern=_HASH_PATTERN)
    block_number: int = Field(..., alias="blockNumber", ge=0)
    log_index: int = Field(default=0, alias="logIndex", ge=0)
    block_timestamp: datetime | None = Field(default=None, alias="blockTimestamp")

    @field_validator("block_timestamp")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class ClaimedArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    distribution_id: int = Field(..., alias="distributionId", ge=0)
    index: int = Field(..., ge=0)
    account: str = Field(..., pattern=_ADDRESS_PATTERN)
    amount: int = Field(..., gt=0)


class ClaimedEvent(_EventBase):
    event: Literal["Claimed"]
    args: ClaimedArgs

    def to_claim_record(self) -> ClaimRecord:
        return ClaimRecord(
            index=self.args.index,
            claimed_at=self.block_timestamp,
            tx_hash=self.transaction_hash,
        )


class DistributionCreatedArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    distribution_id: int = Field(..., alias="distributionId", ge=0)
    merkle_root: str = Field(..., alias="merkleRoot", pattern=_HASH_PATTERN)
    total_allocated: int = Field(..., alias="totalAllocated", ge=0)
    vault_type: int = Field(..., alias="vaultType", ge=0)
    start_time: int = Field(..., alias="startTime", ge=0)
    end_time: int = Field(..., alias="endTime", ge=0)

    @property
    def vault(self) -> VaultType:
        return VaultType.from_onchain(self.vault_type)


class DistributionCreatedEvent(_EventBase):
    event: Literal["MerkleDistributionCreated"]
    args: DistributionCreatedArgs


class DistributionFinalizedArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    distribution_id: int = Field(..., alias="distributionId", ge=0)
    unclaimed_amount: int = Field(..., alias="unclaimedAmount", ge=0)


class DistributionFinalizedEvent(_EventBase):
    event: Literal["DistributionFinalized"]
    args: DistributionFinalizedArgs


ChainEvent = Annotated[
    Union[ClaimedEvent, DistributionCreatedEvent, DistributionFinalizedEvent],
    Field(discriminator="event"),
]

_CHAIN_EVENT_ADAPTER: TypeAdapter[Any] = TypeAdapter(ChainEvent)

KNOWN_EVENT_TYPES: frozenset[str] = frozenset(
    {"Claimed", "MerkleDistributionCreated", "DistributionFinalized"}
)


def decode_chain_event(payload: Any) -> ClaimedEvent | DistributionCreatedEvent | DistributionFinalizedEvent:
    """
    Decode a raw event payload into its typed variant.

    Raises:
        ChainEventDecodeException: unknown event tag or malformed payload
    """
    if not isinstance(payload, dict):
        raise ChainEventDecodeException(
            f"Event payload must be an object, got {type(payload).__name__}"
        )

    event_type = payload.get("event")
    if event_type not in KNOWN_EVENT_TYPES:
        raise ChainEventDecodeException(
            f"Unknown chain event type: {event_type!r}",
            event_type=str(event_type),
        )

    try:
        return _CHAIN_EVENT_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise ChainEventDecodeException(
            f"Malformed {event_type} event: {e.error_count()} field error(s)",
            event_type=event_type,
            details={"errors": [
                {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                for err in e.errors()
            ]},
        ) from e
