# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/utils/execution.py
import logging
from dataclasses import dataclass

log = logging.getLogger("k3dflux")


@dataclass(frozen=True)
class ExecutionContext:
    """
    Decides whether mutations (cluster create/delete, kubectl apply/wait,
    flux install, hosts file writes) actually happen. Read-only probes
    always run.
    """

    dry_run: bool = False

    def skip(self, action: str) -> bool:
        """True (and logged) when `action` must not be performed."""
        if self.dry_run:
            log.info("[dry-run] %s", action)
        return self.dry_run
