"""
JSON-RPC Chain Reader

Reads distribution state from an EVM node over JSON-RPC.

Contract surface used:
    getDistributionInfo(uint256 distributionId) returns (
        bytes32 merkleRoot, uint256 totalAllocated, uint256 totalClaimed,
        uint256 startTime, uint256 endTime, uint8 vaultType,
        bool finalized, bool isActive, uint256 unclaimed)

    event Claimed(uint256 indexed distributionId, uint256 index,
                  address indexed account, uint256 amount)

Claim flags are rebuilt by replaying Claimed logs for the distribution.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Optional

from eth_abi import decode, encode
from eth_utils import (
    event_signature_to_log_topic,
    function_signature_to_4byte_selector,
    is_hex_address,
)

from core.crypto.hashing import from_hex, to_hex
from core.http.client import HttpClient, HttpError
from core.schemas.chain import ClaimRecord, TimingWindow, decode_chain_event
from core.schemas.errors import UpstreamUnavailableException
from core.schemas.timestamps import from_unix_seconds

from .reader import ChainReader

logger = logging.getLogger(__name__)


GET_DISTRIBUTION_INFO = "getDistributionInfo(uint256)"
DISTRIBUTION_INFO_TYPES = [
    "bytes32", "uint256", "uint256", "uint256", "uint256",
    "uint8", "bool", "bool", "uint256",
]
CLAIMED_EVENT = "Claimed(uint256,uint256,address,uint256)"

ZERO_ROOT = b"\x00" * 32


class JsonRpcError(Exception):
    """Error object returned by the node."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"JSON-RPC error {code}: {message}")
        self.code = code
        self.message = message


@dataclass(frozen=True)
class DistributionInfo:
    """Decoded getDistributionInfo() result."""
    merkle_root: bytes
    total_allocated: int
    total_claimed: int
    start_time: int
    end_time: int
    vault_type: int
    finalized: bool
    is_active: bool
    unclaimed: int

    @property
    def committed(self) -> bool:
        return self.merkle_root != ZERO_ROOT


class JsonRpcChainReader(ChainReader):
    """ChainReader backed by eth_call and eth_getLogs."""

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        *,
        from_block: int = 0,
        timeout: float = 30.0,
        http_client: Optional[HttpClient] = None,
    ) -> None:
        if not is_hex_address(contract_address):
            raise ValueError(f"Invalid contract address: {contract_address!r}")
        self.rpc_url = rpc_url
        self.contract_address = contract_address.lower()
        self.from_block = from_block
        self._http = http_client or HttpClient(timeout=timeout)
        self._ids = itertools.count(1)
        self._info_selector = function_signature_to_4byte_selector(GET_DISTRIBUTION_INFO)
        self._claimed_topic = to_hex(event_signature_to_log_topic(CLAIMED_EVENT))

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = self._http.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except (HttpError, ValueError) as e:
            raise UpstreamUnavailableException(
                f"{method} failed: {e}",
                details={"method": method},
            ) from e

        if body.get("error"):
            error = body["error"]
            raise UpstreamUnavailableException(
                f"{method} failed",
                details={
                    "method": method,
                    "rpc_error": str(JsonRpcError(error.get("code", 0), error.get("message", ""))),
                },
            )
        return body.get("result")

    # ------------------------------------------------------------------
    # Contract reads
    # ------------------------------------------------------------------

    def get_distribution_info(self, distribution_id: int) -> DistributionInfo:
        data = self._info_selector + encode(["uint256"], [distribution_id])
        result = self._call(
            "eth_call",
            [{"to": self.contract_address, "data": to_hex(data)}, "latest"],
        )
        values = decode(DISTRIBUTION_INFO_TYPES, from_hex(result))
        return DistributionInfo(*values)

    def get_root(self, distribution_id: int) -> Optional[bytes]:
        info = self.get_distribution_info(distribution_id)
        return info.merkle_root if info.committed else None

    def get_timing_window(self, distribution_id: int) -> Optional[TimingWindow]:
        info = self.get_distribution_info(distribution_id)
        if not info.committed or info.end_time <= info.start_time:
            return None
        return TimingWindow(
            start_time=from_unix_seconds(info.start_time),
            end_time=from_unix_seconds(info.end_time),
        )

    def _block_timestamp(self, block_number: int, cache: dict[int, int]) -> int:
        if block_number not in cache:
            block = self._call("eth_getBlockByNumber", [hex(block_number), False])
            cache[block_number] = int(block["timestamp"], 16)
        return cache[block_number]

    def get_claimed_flags(self, distribution_id: int, leaf_count: int) -> dict[int, ClaimRecord]:
        """
        Replay Claimed logs for one distribution.

        Indices are not filtered against leaf_count; an out-of-range index
        is reported back to the caller as-is.
        """
        topic_id = to_hex(encode(["uint256"], [distribution_id]))
        logs = self._call("eth_getLogs", [{
            "address": self.contract_address,
            "fromBlock": hex(self.from_block),
            "toBlock": "latest",
            "topics": [self._claimed_topic, topic_id],
        }]) or []

        timestamps: dict[int, int] = {}
        records: dict[int, ClaimRecord] = {}
        for log in logs:
            if log.get("removed"):
                continue
            block_number = int(log["blockNumber"], 16)
            index, amount = decode(["uint256", "uint256"], from_hex(log["data"]))
            account = "0x" + log["topics"][2][-40:]
            event = decode_chain_event({
                "event": "Claimed",
                "transactionHash": log["transactionHash"],
                "blockNumber": block_number,
                "logIndex": int(log.get("logIndex", "0x0"), 16),
                "blockTimestamp": from_unix_seconds(
                    self._block_timestamp(block_number, timestamps)
                ),
                "args": {
                    "distributionId": distribution_id,
                    "index": index,
                    "account": account,
                    "amount": amount,
                },
            })
            records.setdefault(event.args.index, event.to_claim_record())

        logger.debug(
            "Distribution %d: %d claim log(s) for %d leaves",
            distribution_id, len(records), leaf_count,
        )
        return records

    def close(self) -> None:
        self._http.close()
