"""Client for the running application's JSON-RPC service."""

from __future__ import annotations

import json
import random
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any

from feesim.coredata import CoreMempoolEntry
from feesim.mempool import MempoolState


@dataclass(frozen=True)
class ApiConfig:
    """Address of the service; ``timeout`` in seconds, 0 for none."""

    host: str = "localhost"
    port: str = "8350"
    timeout: float = 0


class ApiError(Exception):
    """The service returned an error or an unexpected response."""


def _join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ApiError(f"{what}: expected an object")
    return value


def _float_lists(value: Any, what: str) -> dict[str, list[float]]:
    result = {}
    for key, items in _mapping(value, what).items():
        if not isinstance(items, list) or not all(_is_number(x) for x in items):
            raise ApiError(f"{what}: {key} is not a list of numbers")
        result[key] = [float(x) for x in items]
    return result


class ApiClient:
    """Calls the service's methods and decodes their results."""

    def __init__(self, config: ApiConfig | None = None) -> None:
        self._config = config or ApiConfig()
        self._url = "http://" + _join_host_port(self._config.host, self._config.port)

    def _call(self, method: str, arg: Any = None) -> Any:
        body = json.dumps(
            {"method": method, "params": [arg], "id": random.getrandbits(63)}
        ).encode()
        request = urllib.request.Request(
            self._url, data=body, method="POST", headers={"Content-Type": "application/json"}
        )
        timeout = self._config.timeout or None
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                payload = response.read()
        except urllib.error.HTTPError as exc:
            payload = exc.read()
        try:
            reply = json.loads(payload)
        except ValueError as exc:
            raise ApiError(f"decoding response: {exc}") from exc
        if not isinstance(reply, dict):
            raise ApiError("decoding response: expected an object")
        if reply.get("error") is not None:
            error = reply["error"]
            raise ApiError(error if isinstance(error, str) else json.dumps(error))
        if reply.get("result") is None:
            raise ApiError("result is null")
        return reply["result"]

    def stop(self) -> None:
        self._call("stop")

    def status(self) -> dict[str, str]:
        result = _mapping(self._call("status"), "status")
        if not all(isinstance(v, str) for v in result.values()):
            raise ApiError("status: expected string values")
        return result

    def estimate_fee(self, n: int = 0) -> Any:
        """Fee rate (BTC/kB) for confirmation in ``n`` blocks; a list for every n when 0."""
        return self._call("estimatefee", n)

    def scores(self) -> dict[str, list[float]]:
        return _float_lists(self._call("predictscores"), "predictscores")

    def tx_rate(self, n: int = 0) -> dict[str, list[float]]:
        return _float_lists(self._call("txrate", n), "txrate")

    def cap_rate(self, n: int = 0) -> dict[str, list[float]]:
        return _float_lists(self._call("caprate", n), "caprate")

    def mempool_size(self, n: int = 0) -> dict[str, list[float]]:
        return _float_lists(self._call("mempoolsize", n), "mempoolsize")

    def pause(self) -> None:
        self._call("pause")

    def unpause(self) -> None:
        self._call("unpause")

    def set_debug(self, on: bool) -> None:
        self._call("setdebug", on)

    def config(self) -> dict[str, Any]:
        return _mapping(self._call("config"), "config")

    def metrics(self) -> dict[str, Any]:
        return _mapping(self._call("metrics"), "metrics")

    def block_source(self) -> dict[str, Any]:
        return _mapping(self._call("blocksource"), "blocksource")

    def mempool_state(self) -> MempoolState:
        """The service's current mempool, with entries in the node's format."""
        result = _mapping(self._call("mempoolstate"), "mempoolstate")
        try:
            raw_entries = result["entries"]
            height, time, min_fee_rate = result["height"], result["time"], result["minfeerate"]
        except KeyError as exc:
            raise ApiError(f"mempoolstate: missing field {exc}") from exc
        if not isinstance(raw_entries, dict) or not all(
            isinstance(entry, dict) for entry in raw_entries.values()
        ):
            raise ApiError("mempoolstate: malformed entries")
        if not all(_is_int(v) for v in (height, time, min_fee_rate)):
            raise ApiError("mempoolstate: height, time and minfeerate must be integers")
        entries = {txid: CoreMempoolEntry.from_json(entry) for txid, entry in raw_entries.items()}
        return MempoolState(height=height, entries=entries, time=time, min_fee_rate=min_fee_rate)