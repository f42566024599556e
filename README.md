# feesim

Building blocks for estimating Bitcoin transaction fees. `feesim` collects
mempool snapshots and blocks from a Bitcoin Core node over JSON-RPC, derives
statistics about how miners fill their blocks, estimates the rate at which new
transactions arrive, and stores what it records in local files. It also ships
a command-line client for a running fee simulation service.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Command line

The `feesim` command sends one request to a fee simulation service over
JSON-RPC. The service address is taken from the `apprpc` section of the
configuration (by default `localhost:8350`). The global options `--config`
and `--datadir` choose the config file and data directory.

```
feesim status            # whether a fee estimate, tx source, block source and mempool data are available
feesim estimatefee       # fee rate (BTC/kB) for every available confirmation target
feesim estimatefee 3     # fee rate (BTC/kB) for confirmation within 3 blocks
feesim scores            # share of transactions confirmed within their predicted time
feesim txrate 20         # reverse cumulative tx byte rate (bytes/s) against fee rate (sats/kB)
feesim caprate 20        # cumulative capacity byte rate (bytes/s) against fee rate
feesim mempoolsize 20    # cumulative mempool size (bytes) against fee rate
feesim pause             # pause the simulation
feesim unpause           # resume the simulation
feesim setdebug true     # turn debug logging on ("false" turns it off)
feesim config            # print the service configuration as JSON
feesim metrics           # print service metrics as JSON
feesim stop              # stop the service
```

The optional number after `txrate`, `caprate` and `mempoolsize` sets how many
points of the curve are returned. Errors are printed to standard error and the
command exits with status 1.

## Library

- `feesim.sfr` computes the *stranding fee rate* of a block, the fee rate
  that best separates transactions the miner included from those it left
  behind (`stranding_fee_rate`, `abkn`, `SFRStat`, `SFRTx`).
- `feesim.records` defines the `Tx` and `BlockStat` records, with
  `to_dict`/`from_dict` for their JSON form.
- `feesim.blocksource` estimates an `IndBlockSource` from a window of
  `BlockStat`s (`ind_block_source`, `ind_block_source_smfr`), raising
  `BlockCoverageError` or `InsufficientBlocksError` when the data is too thin.
  `IndBlockSource.capacity_rate` gives the expected capacity at a fee rate.
- `feesim.txsource` estimates the transaction arrival model, in one go with
  `multi_tx_source` or incrementally with `UniTxSourceEstimator.estimate`
  (random thinning is done by `round_random`). A too short observation window
  raises `TxWindowError`. `MultiTxSource.byte_rate` and `UniTxSource.byte_rate`
  give the arriving bytes per second at or above a fee rate.
- `feesim.mempool` holds mempool snapshots (`MempoolState` with `copy`, `sub`
  and `size_fn`), removes low-fee transactions and their descendants in place
  (`prune_low_fee`) and links a mempool into `SimTx` objects
  (`simify_mempool`).
- `feesim.processblock.process_block` turns two successive mempool states into
  one `BlockStat` per new block; `printable` strips unprintable text.
- `feesim.collector.Collector` polls a state getter every `poll_period`
  seconds in a background thread, stores new transactions and block
  statistics, and publishes states, blocks and errors on its `states`,
  `blocks` and `errors` queues.
- `feesim.coredata` parses node mempool entries and blocks
  (`CoreMempoolEntry`, `CoreBlock`).
- `feesim.corerpc` is a small node JSON-RPC client (`CoreClient`, `RPCConfig`,
  `RPCError`); `getters` builds the state and block callbacks the collector
  needs.
- `feesim.apiclient.ApiClient` is the service client behind the command line.
- `feesim.storage` provides file-backed `TxDB` and `BlockStatDB` stores. Each
  holds a lock on its file while open; opening one whose file is already
  locked fails with `DatabaseLockedError` after waiting one second.

## Configuration

`feesim.config.load_config(config_file, data_dir)` reads a YAML file on top of
the built-in defaults from `default_config()`. The file and data directory may
also be given through the `FEESIM_CONFIG` and `FEESIM_DATADIR` environment
variables. Without either, `config.yml` is looked up in the per-user data
directory given by `feesim.appdata.app_data_dir` (for example `~/.feesim` on
Linux). A data directory given explicitly overrides the file's `datadir`. The
data directory is created if it does not exist, and the log file defaults to
`feesim.log` inside it.

Recognised keys: the sections `collect`, `transient`, `predict`, `unitx`,
`indblock`, `bitcoinrpc` and `apprpc`, and the top-level values `simperiod`,
`txmaxage`, `txgaptol`, `datadir` and `logfile`.

A minimal configuration pointing at a local node:

```yaml
bitcoinrpc:
  host: localhost
  port: "8332"
  username: user
  password: password
  timeout: 30
```

## What this package does not do

The package does not contain the fee simulation service itself: there is no
queue simulator, no fee prediction or scoring, and no JSON-RPC server. The
`feesim` command and `ApiClient` only talk to such a service when one is
running elsewhere. The `transient`, `predict` and timing settings are read and
kept in `Config` but nothing in the package uses them.