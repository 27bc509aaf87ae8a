# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from .models import BootstrapConfig

log = logging.getLogger("k3dflux")


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_config(path: str | Path | None = None) -> BootstrapConfig:
    """
    Load and validate a bootstrap config.

    Every field has a default, so with no path the built-in local cluster
    (k3d-local, flux-system from akafrmn/ti-httpbin) is returned.  Relative
    ``cluster.config_path`` values are resolved against the config file's
    directory.  ``${ENV_VAR}`` placeholders are expanded at load time.
    """
    if path is None:
        log.debug("No bootstrap config given, using defaults")
        return BootstrapConfig()

    path = Path(path)
    data = _load_yaml(path)
    cfg = BootstrapConfig.model_validate(data)

    if not cfg.cluster.config_path.is_absolute():
        cfg.cluster.config_path = path.parent / cfg.cluster.config_path
    log.debug("Loaded bootstrap config from %s", path)
    return cfg
