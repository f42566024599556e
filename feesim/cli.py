"""Command-line client for a running fee simulation service."""

from __future__ import annotations

import argparse
import http.client
import json
import sys
from typing import Any, Callable, Mapping, Sequence

import yaml

from feesim.apiclient import ApiClient, ApiConfig, ApiError
from feesim.config import load_config

_STATUS_KEYS = ("result", "txsource", "blocksource", "mempool")
_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _lines(lines: Sequence[str]) -> str:
    return "".join(line + "\n" for line in lines)


def _paired(result: Mapping[str, Sequence[float]], first: str, second: str) -> list[tuple[float, float]]:
    xs = list(result.get(first, []))
    ys = list(result.get(second, []))
    if len(ys) < len(xs):
        raise ValueError(f"{second} has fewer values than {first}")
    return list(zip(xs, ys))


def format_status(result: Mapping[str, str]) -> str:
    """One line per status item: result, txsource, blocksource, mempool."""
    return _lines([f"{key:<12}: {result.get(key, '')}" for key in _STATUS_KEYS])


def format_estimate(n: int, result: Any) -> str:
    """A single fee rate when ``n`` is set, else one numbered line per confirmation target."""
    if n == 0:
        if not isinstance(result, list) or not all(_is_number(x) for x in result):
            raise ValueError("estimatefee: expected a list of fee rates")
        return _lines([f"{i:2d}: {fee_rate:10.8f}" for i, fee_rate in enumerate(result, start=1)])
    if not _is_number(result):
        raise ValueError("estimatefee: expected a fee rate")
    return _lines([f"{result:10.8f}"])


def format_scores(result: Mapping[str, Sequence[float]]) -> str:
    """Proportion of txs confirmed within their predicted time, per prediction."""
    lines = []
    for i, (attained, exceeded) in enumerate(_paired(result, "attained", "exceeded"), start=1):
        total = exceeded + attained
        ratio = f"{attained / total:5.3f}" if total else f"{'NaN':>5}"
        lines.append(f"{i:2d}: {ratio} ({int(attained)}/{int(total)})")
    return _lines(lines)


def format_rate_curve(result: Mapping[str, Sequence[float]]) -> str:
    """Byte rate against fee rate, one point per line."""
    return _lines([f"{int(x):8d}: {y:8.2f}" for x, y in _paired(result, "x", "y")])


def format_mempool_size(result: Mapping[str, Sequence[float]]) -> str:
    """Mempool size in bytes against fee rate, one point per line."""
    return _lines([f"{int(x):8d}: {int(y):9d}" for x, y in _paired(result, "x", "y")])


def _parse_int(text: str | None) -> int:
    if not text:
        return 0
    try:
        return int(text, 10)
    except ValueError:
        raise ValueError(f"invalid number: {text!r}") from None


def _parse_bool(text: str | None) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"invalid boolean: {text!r}")


def _stop(client: ApiClient, args: argparse.Namespace) -> str:
    client.stop()
    return ""


def _status(client: ApiClient, args: argparse.Namespace) -> str:
    return format_status(client.status())


def _estimate_fee(client: ApiClient, args: argparse.Namespace) -> str:
    n = _parse_int(args.n)
    return format_estimate(n, client.estimate_fee(n))


def _scores(client: ApiClient, args: argparse.Namespace) -> str:
    return format_scores(client.scores())


def _tx_rate(client: ApiClient, args: argparse.Namespace) -> str:
    return format_rate_curve(client.tx_rate(_parse_int(args.numpoints)))


def _cap_rate(client: ApiClient, args: argparse.Namespace) -> str:
    return format_rate_curve(client.cap_rate(_parse_int(args.numpoints)))


def _mempool_size(client: ApiClient, args: argparse.Namespace) -> str:
    return format_mempool_size(client.mempool_size(_parse_int(args.numpoints)))


def _pause(client: ApiClient, args: argparse.Namespace) -> str:
    client.pause()
    return ""


def _unpause(client: ApiClient, args: argparse.Namespace) -> str:
    client.unpause()
    return ""


def _set_debug(client: ApiClient, args: argparse.Namespace) -> str:
    client.set_debug(_parse_bool(args.value))
    return ""


def _show_config(client: ApiClient, args: argparse.Namespace) -> str:
    return json.dumps(client.config(), indent="\t", sort_keys=True) + "\n"


def _show_metrics(client: ApiClient, args: argparse.Namespace) -> str:
    return json.dumps(client.metrics(), indent="\t", sort_keys=True) + "\n"


_NUMPOINTS_HELP = "number of points on the function to return"

_COMMANDS: list[tuple[str, str, Callable[[ApiClient, argparse.Namespace], str], list[tuple[str, str]]]] = [
    ("stop", "Stop the program.", _stop, []),
    (
        "status",
        "Show whether a fee estimate, tx source estimate, block source estimate "
        "and mempool data are available.",
        _status,
        [],
    ),
    (
        "estimatefee",
        "Required fee rate (BTC/kB) for confirmation in N blocks; all available N if omitted.",
        _estimate_fee,
        [("n", "number of blocks")],
    ),
    (
        "scores",
        "Proportion of txs confirmed within their predicted time, by predicted confirmation time.",
        _scores,
        [],
    ),
    (
        "txrate",
        "Reverse cumulative tx byte rate (bytes/s) as a function of fee rate (sats/kB).",
        _tx_rate,
        [("numpoints", _NUMPOINTS_HELP)],
    ),
    (
        "caprate",
        "Cumulative capacity byte rate (bytes/s) as a function of fee rate (sats/kB).",
        _cap_rate,
        [("numpoints", _NUMPOINTS_HELP)],
    ),
    (
        "mempoolsize",
        "Cumulative mempool size (bytes) as a function of fee rate (sats/kB).",
        _mempool_size,
        [("numpoints", _NUMPOINTS_HELP)],
    ),
    ("pause", "Pause the simulation.", _pause, []),
    ("unpause", "Unpause the simulation.", _unpause, []),
    (
        "setdebug",
        'Turn on debug-level logging with "true"; turn off with "false".',
        _set_debug,
        [("value", "true or false")],
    ),
    ("config", "Show app config settings.", _show_config, []),
    ("metrics", "Show app metrics.", _show_metrics, []),
]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="feesim", description="Query a running fee simulator.")
    parser.add_argument("--config", default=None, help="path of the config file")
    parser.add_argument("--datadir", default=None, help="path of the data directory")
    commands = parser.add_subparsers(dest="command")
    for name, description, handler, positionals in _COMMANDS:
        sub = commands.add_parser(name, help=description, description=description)
        for arg, arg_help in positionals:
            sub.add_argument(arg, nargs="?", default=None, help=arg_help)
        sub.set_defaults(handler=handler)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run one client command; returns the process exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help(sys.stderr)
        return 2
    try:
        config = load_config(args.config, args.datadir)
        client = ApiClient(ApiConfig(host=config.apprpc.host, port=config.apprpc.port))
        output = args.handler(client, args)
    except (ApiError, OSError, ValueError, yaml.YAMLError, http.client.HTTPException) as exc:
        print(f"feesim: {exc}", file=sys.stderr)
        return 1
    sys.stdout.write(output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())