"""Bitcoin fee estimation: mempool collection, block statistics, tx and block source estimates, storage and a service client."""

__version__ = "0.1.0"

__all__ = [
    "apiclient",
    "appdata",
    "blocksource",
    "cli",
    "collector",
    "config",
    "coredata",
    "corerpc",
    "mempool",
    "processblock",
    "records",
    "sfr",
    "storage",
    "txsource",
]