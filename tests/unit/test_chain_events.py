"""
Chain event decoding tests.
Tests for core/schemas/chain.py
"""
from datetime import datetime, timezone

import pytest

from core.schemas.chain import (
    ClaimedEvent,
    DistributionCreatedEvent,
    DistributionFinalizedEvent,
    TimingWindow,
    decode_chain_event,
)
from core.schemas.allocation import VaultType
from core.schemas.errors import ChainEventDecodeException, ErrorCodes

from fixtures.common import ADDR_A, make_tx_hash


def claimed_payload(**args_overrides):
    args = {"distributionId": 1, "index": 2, "account": ADDR_A, "amount": 100}
    args.update(args_overrides)
    return {
        "event": "Claimed",
        "transactionHash": make_tx_hash(9),
        "blockNumber": 123,
        "logIndex": 4,
        "blockTimestamp": datetime(2026, 2, 1, tzinfo=timezone.utc),
        "args": args,
    }


class TestDecode:
    def test_claimed(self):
        event = decode_chain_event(claimed_payload())

        assert isinstance(event, ClaimedEvent)
        assert event.args.index == 2
        assert event.args.distribution_id == 1
        assert event.block_number == 123

    def test_claimed_to_claim_record(self):
        record = decode_chain_event(claimed_payload()).to_claim_record()

        assert record.index == 2
        assert record.tx_hash == make_tx_hash(9)
        assert record.claimed_at == datetime(2026, 2, 1, tzinfo=timezone.utc)

    def test_distribution_created(self):
        event = decode_chain_event({
            "event": "MerkleDistributionCreated",
            "transactionHash": make_tx_hash(1),
            "blockNumber": 10,
            "args": {
                "distributionId": 1,
                "merkleRoot": make_tx_hash(2),
                "totalAllocated": 350,
                "vaultType": 0,
                "startTime": 1000,
                "endTime": 2000,
            },
        })
        assert isinstance(event, DistributionCreatedEvent)
        assert event.args.total_allocated == 350
        assert event.args.vault == VaultType.PLAYER_TASKS

    def test_distribution_finalized(self):
        event = decode_chain_event({
            "event": "DistributionFinalized",
            "transactionHash": make_tx_hash(1),
            "blockNumber": 10,
            "args": {"distributionId": 1, "unclaimedAmount": 50},
        })
        assert isinstance(event, DistributionFinalizedEvent)


class TestDecodeFailures:
    def test_unknown_event(self):
        with pytest.raises(ChainEventDecodeException) as exc_info:
            decode_chain_event({"event": "Transfer", "args": {}})

        assert exc_info.value.code == ErrorCodes.CHAIN_EVENT_DECODE_ERROR
        assert exc_info.value.details["event_type"] == "Transfer"

    def test_not_a_mapping(self):
        with pytest.raises(ChainEventDecodeException):
            decode_chain_event(["Claimed"])

    def test_missing_field(self):
        payload = claimed_payload()
        del payload["args"]["amount"]

        with pytest.raises(ChainEventDecodeException) as exc_info:
            decode_chain_event(payload)
        assert exc_info.value.details["errors"]

    def test_bad_account(self):
        with pytest.raises(ChainEventDecodeException):
            decode_chain_event(claimed_payload(account="0x1234"))

    def test_extra_field_rejected(self):
        payload = claimed_payload()
        payload["args"]["bonus"] = 1

        with pytest.raises(ChainEventDecodeException):
            decode_chain_event(payload)


def test_timing_window_ordered():
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        TimingWindow(start_time=start, end_time=start)


def test_unknown_onchain_vault():
    with pytest.raises(ValueError):
        VaultType.from_onchain(len(VaultType))
