import os
from dataclasses import replace

import pytest
import yaml

from feesim.appdata import app_data_dir
from feesim.blocksource import IndBlockSourceConfig
from feesim.config import (
    CONFIG_FILE_ENV,
    DATA_DIR_ENV,
    TransientSettings,
    default_config,
    load_config,
)
from feesim.txsource import UniTxSourceConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_FILE_ENV, raising=False)
    monkeypatch.delenv(DATA_DIR_ENV, raising=False)


def test_defaults():
    cfg = default_config()
    assert cfg.collect.poll_period == 10
    assert cfg.transient == TransientSettings(max_block_confirms=12, min_success_pct=0.9, num_iters=10000)
    assert cfg.predict.halflife == 1008
    assert cfg.unitx == UniTxSourceConfig(min_window=600, max_window=10800, halflife=3600)
    assert cfg.indblock == IndBlockSourceConfig(window=2016, min_cov=0.5, guard_interval=300, tail_pct=0.1)
    assert (cfg.bitcoinrpc.host, cfg.bitcoinrpc.port, cfg.bitcoinrpc.timeout) == ("localhost", "8332", 30)
    assert cfg.apprpc.port == "8350"
    assert (cfg.sim_period, cfg.tx_max_age, cfg.tx_gap_tol) == (60, 10800, 3600)
    assert cfg.datadir == app_data_dir("feesim", False)


def test_explicit_file_overlays_defaults(tmp_path):
    config_file = tmp_path / "custom.yml"
    config_file.write_text("bitcoinrpc:\n  port: 18332\nindblock:\n  mincov: 0.7\nsimperiod: 30\n")
    data_dir = tmp_path / "data"
    cfg = load_config(str(config_file), str(data_dir))
    defaults = default_config()
    assert cfg.bitcoinrpc.port == "18332"
    assert cfg.bitcoinrpc.host == defaults.bitcoinrpc.host
    assert cfg.indblock.min_cov == 0.7
    assert cfg.indblock.window == defaults.indblock.window
    assert cfg.sim_period == 30
    assert cfg.datadir == str(data_dir)
    assert data_dir.is_dir()


def test_explicit_missing_file_fails(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "absent.yml"), str(tmp_path / "data"))


def test_missing_default_file_gives_defaults(tmp_path):
    data_dir = tmp_path / "fresh"
    cfg = load_config(data_dir=str(data_dir))
    assert data_dir.is_dir()
    assert cfg.logfile == os.path.join(str(data_dir), "feesim.log")
    assert cfg == replace(default_config(), datadir=str(data_dir), logfile=cfg.logfile)


def test_default_file_in_data_dir(tmp_path):
    (tmp_path / "config.yml").write_text("simperiod: 30\ntransient:\n  numiters: 500\n")
    cfg = load_config(data_dir=str(tmp_path))
    assert cfg.sim_period == 30
    assert cfg.transient.num_iters == 500
    assert cfg.transient.max_block_confirms == default_config().transient.max_block_confirms


def test_environment_variables(tmp_path, monkeypatch):
    config_file = tmp_path / "env.yml"
    config_file.write_text("txmaxage: 100\n")
    data_dir = tmp_path / "envdata"
    monkeypatch.setenv(CONFIG_FILE_ENV, str(config_file))
    monkeypatch.setenv(DATA_DIR_ENV, str(data_dir))
    cfg = load_config()
    assert cfg.tx_max_age == 100
    assert cfg.datadir == str(data_dir)


def test_argument_beats_environment(tmp_path, monkeypatch):
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "from_env"))
    cfg = load_config(data_dir=str(tmp_path / "from_arg"))
    assert cfg.datadir == str(tmp_path / "from_arg")


def test_file_datadir_and_override(tmp_path):
    file_dir = tmp_path / "from_file"
    config_file = tmp_path / "c.yml"
    config_file.write_text(yaml.safe_dump({"datadir": str(file_dir)}))
    cfg = load_config(str(config_file))
    assert cfg.datadir == str(file_dir)
    assert cfg.logfile == os.path.join(str(file_dir), "feesim.log")
    assert file_dir.is_dir()

    overridden = load_config(str(config_file), str(tmp_path / "arg"))
    assert overridden.datadir == str(tmp_path / "arg")


def test_logfile_from_file_kept(tmp_path):
    log_path = str(tmp_path / "logs" / "app.log")
    config_file = tmp_path / "c.yml"
    config_file.write_text(yaml.safe_dump({"logfile": log_path}))
    cfg = load_config(str(config_file), str(tmp_path / "data"))
    assert cfg.logfile == log_path


def test_empty_file_gives_defaults(tmp_path):
    config_file = tmp_path / "empty.yml"
    config_file.write_text("")
    cfg = load_config(str(config_file), str(tmp_path / "data"))
    assert cfg.transient == default_config().transient
    assert cfg.bitcoinrpc == default_config().bitcoinrpc


def test_bad_value_fails(tmp_path):
    config_file = tmp_path / "bad.yml"
    config_file.write_text("transient:\n  numiters: lots\n")
    with pytest.raises(ValueError, match="numiters"):
        load_config(str(config_file), str(tmp_path / "data"))


def test_bad_section_shape_fails(tmp_path):
    config_file = tmp_path / "bad.yml"
    config_file.write_text("apprpc: 5\n")
    with pytest.raises(ValueError, match="apprpc"):
        load_config(str(config_file), str(tmp_path / "data"))


def test_malformed_default_file_fails(tmp_path):
    (tmp_path / "config.yml").write_text("simperiod: [1, 2\n")
    with pytest.raises(yaml.YAMLError):
        load_config(data_dir=str(tmp_path))