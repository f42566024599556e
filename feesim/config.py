"""Application settings: built-in defaults overlaid with a YAML file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any

import yaml

from feesim.appdata import app_data_dir
from feesim.blocksource import IndBlockSourceConfig
from feesim.corerpc import RPCConfig
from feesim.txsource import UniTxSourceConfig

DEFAULT_CONFIG_FILE_NAME = "config.yml"
DEFAULT_LOG_FILE_NAME = "feesim.log"
CONFIG_FILE_ENV = "FEESIM_CONFIG"
DATA_DIR_ENV = "FEESIM_DATADIR"


@dataclass(frozen=True)
class CollectSettings:
    """Mempool polling period in seconds."""

    poll_period: int = 10


@dataclass(frozen=True)
class TransientSettings:
    max_block_confirms: int = 12
    min_success_pct: float = 0.9
    num_iters: int = 10000


@dataclass(frozen=True)
class PredictSettings:
    max_block_confirms: int = 6
    halflife: int = 1008  # one week of blocks


@dataclass(frozen=True)
class AppRPCConfig:
    host: str = "localhost"
    port: str = "8350"


@dataclass(frozen=True)
class Config:
    collect: CollectSettings = field(default_factory=CollectSettings)
    transient: TransientSettings = field(default_factory=TransientSettings)
    predict: PredictSettings = field(default_factory=PredictSettings)
    sim_period: int = 60
    tx_max_age: int = 10800  # 3 hours
    tx_gap_tol: int = 3600  # 1 hour
    unitx: UniTxSourceConfig = field(
        default_factory=lambda: UniTxSourceConfig(min_window=600, max_window=10800, halflife=3600)
    )
    indblock: IndBlockSourceConfig = field(
        default_factory=lambda: IndBlockSourceConfig(
            window=2016, min_cov=0.5, guard_interval=300, tail_pct=0.1
        )
    )
    bitcoinrpc: RPCConfig = field(
        default_factory=lambda: RPCConfig(host="localhost", port="8332", timeout=30)
    )
    apprpc: AppRPCConfig = field(default_factory=AppRPCConfig)
    datadir: str = ""
    logfile: str = ""


_SECTION_KEYS: dict[type, dict[str, str]] = {
    CollectSettings: {"pollperiod": "poll_period"},
    TransientSettings: {
        "maxblockconfirms": "max_block_confirms",
        "minsuccesspct": "min_success_pct",
        "numiters": "num_iters",
    },
    PredictSettings: {"maxblockconfirms": "max_block_confirms", "halflife": "halflife"},
    UniTxSourceConfig: {"minwindow": "min_window", "maxwindow": "max_window", "halflife": "halflife"},
    IndBlockSourceConfig: {
        "window": "window",
        "mincov": "min_cov",
        "guardinterval": "guard_interval",
        "tailpct": "tail_pct",
    },
    RPCConfig: {
        "host": "host",
        "port": "port",
        "username": "username",
        "password": "password",
        "timeout": "timeout",
    },
    AppRPCConfig: {"host": "host", "port": "port"},
}

_SECTIONS = {
    "collect": "collect",
    "transient": "transient",
    "predict": "predict",
    "unitx": "unitx",
    "indblock": "indblock",
    "bitcoinrpc": "bitcoinrpc",
    "apprpc": "apprpc",
}

_SCALARS = {
    "simperiod": "sim_period",
    "txmaxage": "tx_max_age",
    "txgaptol": "tx_gap_tol",
    "datadir": "datadir",
    "logfile": "logfile",
}


def default_config() -> Config:
    """The built-in settings, with the platform's data directory."""
    return Config(datadir=app_data_dir("feesim", False))


def _convert(value: Any, current: Any, key: str) -> Any:
    if value is None:
        return type(current)()
    is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
    if isinstance(current, str):
        if isinstance(value, str) or is_number:
            return str(value)
    elif isinstance(current, int):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif isinstance(current, float):
        if is_number:
            return float(value)
    raise ValueError(f"config: invalid value {value!r} for {key}")


def _overlay(section: Any, data: Any, where: str) -> Any:
    keys = _SECTION_KEYS[type(section)]
    if data is None:
        return replace(section, **{attr: type(getattr(section, attr))() for attr in keys.values()})
    if not isinstance(data, dict):
        raise ValueError(f"config: {where} must be a mapping")
    changes = {
        attr: _convert(data[key], getattr(section, attr), f"{where}.{key}")
        for key, attr in keys.items()
        if key in data
    }
    return replace(section, **changes)


def _apply(config: Config, data: Any) -> Config:
    if data is None:
        return config
    if not isinstance(data, dict):
        raise ValueError("config: expected a mapping at the top level")
    changes: dict[str, Any] = {}
    for key, attr in _SECTIONS.items():
        if key in data:
            changes[attr] = _overlay(getattr(config, attr), data[key], key)
    for key, attr in _SCALARS.items():
        if key in data:
            changes[attr] = _convert(data[key], getattr(config, attr), key)
    return replace(config, **changes)


def load_config(config_file: str | None = None, data_dir: str | None = None) -> Config:
    """Load the settings and make sure the data directory exists.

    ``config_file`` and ``data_dir`` fall back to the FEESIM_CONFIG and
    FEESIM_DATADIR environment variables. A named config file must be
    readable; otherwise ``config.yml`` in the data directory is used if it
    can be read. An explicit data directory overrides the file's.
    """
    config = default_config()
    config_file = config_file or os.environ.get(CONFIG_FILE_ENV, "")
    data_dir = data_dir or os.environ.get(DATA_DIR_ENV, "")

    if config_file:
        with open(config_file, encoding="utf-8") as handle:
            config = _apply(config, yaml.safe_load(handle))
    else:
        path = os.path.join(data_dir or config.datadir, DEFAULT_CONFIG_FILE_NAME)
        try:
            with open(path, encoding="utf-8") as handle:
                text = handle.read()
        except OSError:
            text = None
        if text is not None:
            config = _apply(config, yaml.safe_load(text))

    if data_dir:
        config = replace(config, datadir=data_dir)
    if not config.logfile:
        config = replace(config, logfile=os.path.join(config.datadir, DEFAULT_LOG_FILE_NAME))

    os.makedirs(config.datadir, mode=0o700, exist_ok=True)
    return config