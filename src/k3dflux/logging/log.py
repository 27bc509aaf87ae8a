# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/logging/log.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def default_log_dir() -> Path:
    return Path.home() / ".k3dflux" / "logs"


def _prune(base_dir: Path, command: str, keep: int) -> None:
    # file names start with a sortable UTC timestamp
    old = sorted(base_dir.glob(f"{command}-*.log"))[:-keep] if keep > 0 else []
    for path in old:
        path.unlink(missing_ok=True)
        path.with_name(path.name.split("-", 3)[-1].replace(".log", ".jsonl")).unlink(missing_ok=True)


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "k3dflux",
    command: str = "bootstrap",
    verbose: bool = False,
    console: bool = True,
    keep: int = 20,
) -> tuple[logging.Logger, str, Path]:
    """
    Configure the `name` logger for one CLI invocation.

    - `<base_dir>/<command>-<UTC ts>-<run_id>.log` gets the full DEBUG trace
    - stderr gets WARNING and above, or everything with --debug
    - only the newest `keep` run logs per command are kept

    Returns (logger, run_id, log_path); the run id is shared with the
    observers so the log file and the events file can be correlated.
    """
    run_id = str(uuid.uuid4())
    base_dir = base_dir or default_log_dir()
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{command}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    logger.addHandler(fh)

    if console:
        ch = logging.StreamHandler()
        ch.setLevel(logging.DEBUG if verbose else logging.WARNING)
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    _prune(base_dir, command, keep)

    logger.info("=== k3dflux %s run started ===", command)
    logger.info("run_id=%s", run_id)
    logger.info("log_file=%s", log_path)

    return logger, run_id, log_path
