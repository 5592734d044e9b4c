"""
JSON-RPC chain reader tests.
Tests for core/chain/rpc.py against a scripted HTTP client.
"""
import json
from datetime import datetime, timezone

import pytest
from eth_abi import encode
from eth_utils import event_signature_to_log_topic, function_signature_to_4byte_selector

from core.chain.rpc import (
    CLAIMED_EVENT,
    DISTRIBUTION_INFO_TYPES,
    GET_DISTRIBUTION_INFO,
    JsonRpcChainReader,
)
from core.crypto.hashing import keccak256, to_hex
from core.http.client import HttpError, HttpResponse
from core.schemas.errors import ErrorCodes, UpstreamUnavailableException

from fixtures.common import ADDR_A, ADDR_B, make_tx_hash


CONTRACT = "0x" + "5" * 40
ROOT = keccak256(b"root")
START = 1_767_225_600  # 2026-01-01T00:00:00Z
END = START + 30 * 86400


class ScriptedHttpClient:
    """Answers JSON-RPC posts from a method -> result (or callable) table."""

    def __init__(self, results):
        self.results = results
        self.requests = []

    def post(self, url, *, headers=None, json=None, timeout=None):
        self.requests.append(json)
        result = self.results[json["method"]]
        if isinstance(result, Exception):
            raise result
        if isinstance(result, HttpResponse):
            return result
        if callable(result):
            result = result(json["params"])
        body = {"jsonrpc": "2.0", "id": json["id"], "result": result}
        return HttpResponse(status_code=200, content=_dumps(body))

    def close(self):
        pass


def _dumps(body) -> bytes:
    return json.dumps(body).encode()


def info_result(root=ROOT, start=START, end=END):
    return to_hex(encode(DISTRIBUTION_INFO_TYPES, [root, 350, 0, start, end, 0, False, True, 350]))


def claim_log(index, account, amount, block=100, removed=False, tx=None):
    return {
        "address": CONTRACT,
        "topics": [
            to_hex(event_signature_to_log_topic(CLAIMED_EVENT)),
            to_hex(encode(["uint256"], [1])),
            "0x" + "00" * 12 + account[2:],
        ],
        "data": to_hex(encode(["uint256", "uint256"], [index, amount])),
        "blockNumber": hex(block),
        "transactionHash": tx or make_tx_hash(index + 1),
        "logIndex": "0x0",
        "removed": removed,
    }


def make_reader(results):
    http = ScriptedHttpClient(results)
    return http, JsonRpcChainReader("http://node", CONTRACT, http_client=http)


class TestDistributionInfo:
    def test_eth_call_payload(self):
        http, reader = make_reader({"eth_call": info_result()})
        reader.get_distribution_info(7)

        [request] = http.requests
        call = request["params"][0]
        expected = function_signature_to_4byte_selector(GET_DISTRIBUTION_INFO) + encode(["uint256"], [7])

        assert request["method"] == "eth_call"
        assert call["to"] == CONTRACT
        assert call["data"] == to_hex(expected)

    def test_root(self):
        http, reader = make_reader({"eth_call": info_result()})
        assert reader.get_root(1) == ROOT

    def test_zero_root_means_not_committed(self):
        http, reader = make_reader({"eth_call": info_result(root=b"\x00" * 32)})

        assert reader.get_root(1) is None
        assert reader.get_timing_window(1) is None

    def test_timing_window(self):
        http, reader = make_reader({"eth_call": info_result()})
        window = reader.get_timing_window(1)

        assert window.start_time == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert (window.end_time - window.start_time).days == 30

    def test_invalid_contract_address(self):
        with pytest.raises(ValueError):
            JsonRpcChainReader("http://node", "0x1234")


class TestClaimedFlags:
    def test_replays_logs(self):
        block_ts = START + 3600
        http, reader = make_reader({
            "eth_getLogs": [claim_log(0, ADDR_A, 100), claim_log(2, ADDR_B, 50)],
            "eth_getBlockByNumber": {"timestamp": hex(block_ts)},
        })
        records = reader.get_claimed_flags(1, 3)

        assert set(records) == {0, 2}
        assert records[0].tx_hash == make_tx_hash(1)
        assert records[2].claimed_at == datetime(2026, 1, 1, 1, tzinfo=timezone.utc)

    def test_log_filter(self):
        http, reader = make_reader({"eth_getLogs": []})
        reader.get_claimed_flags(1, 3)

        [request] = http.requests
        log_filter = request["params"][0]
        assert log_filter["address"] == CONTRACT
        assert log_filter["topics"][0] == to_hex(event_signature_to_log_topic(CLAIMED_EVENT))
        assert log_filter["topics"][1] == "0x" + "00" * 31 + "01"

    def test_removed_logs_skipped(self):
        http, reader = make_reader({
            "eth_getLogs": [claim_log(0, ADDR_A, 100, removed=True)],
            "eth_getBlockByNumber": {"timestamp": hex(START)},
        })
        assert reader.get_claimed_flags(1, 3) == {}

    def test_block_timestamps_fetched_once_per_block(self):
        http, reader = make_reader({
            "eth_getLogs": [claim_log(0, ADDR_A, 100, block=5), claim_log(1, ADDR_B, 200, block=5)],
            "eth_getBlockByNumber": {"timestamp": hex(START)},
        })
        reader.get_claimed_flags(1, 3)

        methods = [r["method"] for r in http.requests]
        assert methods.count("eth_getBlockByNumber") == 1

    def test_out_of_range_index_reported(self):
        http, reader = make_reader({
            "eth_getLogs": [claim_log(9, ADDR_A, 100)],
            "eth_getBlockByNumber": {"timestamp": hex(START)},
        })
        assert set(reader.get_claimed_flags(1, 3)) == {9}


class TestFailures:
    def test_transport_error(self):
        http, reader = make_reader({"eth_call": HttpError("connection refused")})

        with pytest.raises(UpstreamUnavailableException) as exc_info:
            reader.get_root(1)
        assert exc_info.value.retryable
        assert exc_info.value.code == ErrorCodes.UPSTREAM_UNAVAILABLE

    def test_http_status_error(self):
        http, reader = make_reader({"eth_call": HttpResponse(status_code=502, content=b"bad gateway")})

        with pytest.raises(UpstreamUnavailableException):
            reader.get_root(1)

    def test_rpc_error_body(self):
        body = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}}
        http, reader = make_reader({"eth_call": HttpResponse(status_code=200, content=_dumps(body))})

        with pytest.raises(UpstreamUnavailableException) as exc_info:
            reader.get_root(1)
        assert "execution reverted" in exc_info.value.details["rpc_error"]

    def test_invalid_json(self):
        http, reader = make_reader({"eth_call": HttpResponse(status_code=200, content=b"<html>")})

        with pytest.raises(UpstreamUnavailableException):
            reader.get_root(1)
