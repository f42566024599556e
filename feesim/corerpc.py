"""Mempool and block data fetched from a Bitcoin node over JSON-RPC."""

from __future__ import annotations

import base64
import itertools
import json
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable

from feesim.coredata import COIN, CoreBlock, CoreMempoolEntry
from feesim.mempool import MempoolState, prune_low_fee


@dataclass(frozen=True)
class RPCConfig:
    """Where and how to reach the node; ``timeout`` is in seconds, 0 for none."""

    host: str = "localhost"
    port: str = "8332"
    username: str = ""
    password: str = field(default="", repr=False)
    timeout: float = 30


class RPCError(Exception):
    """The node rejected a request or answered it improperly."""


def _join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _error_text(error: Any) -> str:
    return error if isinstance(error, str) else json.dumps(error)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class CoreClient:
    """A JSON-RPC client for the node's mempool and block calls."""

    def __init__(self, config: RPCConfig) -> None:
        self._config = config
        self._ids = itertools.count(1)
        self._id_lock = threading.Lock()
        credentials = f"{config.username}:{config.password}".encode()
        self._auth = "Basic " + base64.b64encode(credentials).decode("ascii")
        self._url = "http://" + _join_host_port(config.host, config.port)

    def _request(self, method: str, params: Any = None) -> dict[str, Any]:
        with self._id_lock:
            request_id = next(self._ids)
        return {"jsonrpc": "2.0", "method": method, "params": params, "id": request_id}

    def _send_http(self, body: bytes) -> bytes:
        request = urllib.request.Request(
            self._url,
            data=body,
            method="POST",
            headers={"Content-Type": "application/json", "Authorization": self._auth},
        )
        timeout = self._config.timeout or None
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                status, reason, payload = response.status, response.reason, response.read()
        except urllib.error.HTTPError as exc:
            status, reason, payload = exc.code, exc.reason, exc.read()
        if status != 200:
            raise RPCError(f"{status} {reason}: {payload.decode('utf-8', 'replace')}")
        return payload

    @staticmethod
    def _decode(payload: bytes) -> Any:
        try:
            return json.loads(payload)
        except ValueError as exc:
            raise RPCError(f"invalid RPC response: {exc}") from exc

    def _send(self, request: dict[str, Any]) -> Any:
        response = self._decode(self._send_http(json.dumps(request).encode()))
        if not isinstance(response, dict):
            raise RPCError("malformed RPC response")
        if response.get("id") != request["id"]:
            raise RPCError("mismatched RPC id")
        if response.get("error") is not None:
            raise RPCError(_error_text(response["error"]))
        return response.get("result")

    def _send_batch(self, requests: list[dict[str, Any]]) -> list[Any]:
        responses = self._decode(self._send_http(json.dumps(requests).encode()))
        if not isinstance(responses, list) or not all(isinstance(r, dict) for r in responses):
            raise RPCError("malformed batch RPC response")
        by_id: dict[Any, dict[str, Any]] = {}
        for response in responses:
            by_id.setdefault(response.get("id"), response)
        results = []
        for request in requests:
            response = by_id.get(request["id"])
            if response is None:
                raise RPCError("unmatched req/resp IDs")
            if response.get("error") is not None:
                raise RPCError(_error_text(response["error"]))
            results.append(response.get("result"))
        return results

    def get_network_info(self) -> dict[str, Any]:
        info = self._send(self._request("getnetworkinfo"))
        if not isinstance(info, dict):
            raise RPCError("getnetworkinfo: expected an object")
        return info

    def get_block_hash(self, height: int) -> str:
        """The hex-encoded hash of the block at ``height``."""
        block_hash = self._send(self._request("getblockhash", [height]))
        if not isinstance(block_hash, str):
            raise RPCError("getblockhash: expected a string")
        return block_hash

    def get_block(self, height: int) -> CoreBlock:
        block_hash = self.get_block_hash(height)
        data = self._send(self._request("getblock", [block_hash, True]))
        if not isinstance(data, dict):
            raise RPCError("getblock: expected an object")
        return CoreBlock.from_json(data)

    def poll_mempool(self) -> tuple[int, dict[str, CoreMempoolEntry]]:
        """Fetch the verbose mempool and the block count in one batch."""
        raw_entries, height = self._send_batch(
            [self._request("getrawmempool", [True]), self._request("getblockcount")]
        )
        if not isinstance(raw_entries, dict) or not all(
            isinstance(entry, dict) for entry in raw_entries.values()
        ):
            raise RPCError("getrawmempool: expected an object of entries")
        if not _is_int(height):
            raise RPCError("getblockcount: expected an integer")
        entries = {txid: CoreMempoolEntry.from_json(entry) for txid, entry in raw_entries.items()}
        return height, entries

    def get_relay_fee(self) -> int:
        """The node's minimum relay fee in satoshis per kB."""
        relay_fee = self.get_network_info().get("relayfee")
        if not isinstance(relay_fee, (int, float)) or isinstance(relay_fee, bool):
            raise RPCError("getnetworkinfo: relayfee missing")
        return int(relay_fee * COIN)


def getters(
    time_now: Callable[[], int], config: RPCConfig
) -> tuple[Callable[[], MempoolState], Callable[[int], CoreBlock]]:
    """Build the mempool-state and block getters the collector polls.

    The relay fee is fetched once, here; entries below it are pruned from
    every state along with their descendants.
    """
    client = CoreClient(config)
    relay_fee = client.get_relay_fee()

    def get_state() -> MempoolState:
        height, raw_entries = client.poll_mempool()
        entries = dict(raw_entries)
        prune_low_fee(entries, relay_fee)
        return MempoolState(height=height, entries=entries, time=time_now(), min_fee_rate=relay_fee)

    return get_state, client.get_block