# common/config.py
import os
import json
import logging
from pathlib import Path

# hash-to-curve domain separation tag for BLS signatures (basic scheme)
DEFAULT_HASH_DST = "BLS_SIG_BLS12381G2_XMD:SHA-256_SSWU_RO_NUL_"

HASH_DST = os.getenv("DKG_HASH_DST", DEFAULT_HASH_DST).encode()
LOG_LEVEL = os.getenv("DKG_LOG_LEVEL", "WARNING")
CONFIG_PATH = os.getenv("CONFIG_PATH", "node_config/node1.json")


def configure_logging(level=None):
    """Attach a stream handler to the package loggers (applications and tests only)."""
    level = level or LOG_LEVEL
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    for name in ("common", "dkg", "tbls"):
        log = logging.getLogger(name)
        log.setLevel(level)
        if not log.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(fmt))
            log.addHandler(handler)


def write_node_config(cfg: dict, path=None) -> Path:
    path = Path(path or CONFIG_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(cfg, f, indent=2)
    return path


def read_node_config(path=None) -> dict:
    with open(path or CONFIG_PATH) as f:
        cfg = json.load(f)
    for key in ("node_id", "share", "commits"):
        if key not in cfg:
            raise ValueError(f"node config {path or CONFIG_PATH} is missing '{key}'")
    return cfg
