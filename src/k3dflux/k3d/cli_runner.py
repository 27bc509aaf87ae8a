# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/k3d/cli_runner.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

from ..errors import K3dError
from ..utils.cli_runner import CliRunner

log = logging.getLogger("k3dflux")


class K3dCliRunner(CliRunner):
    """Wrapper around the `k3d` CLI: cluster list / create / delete."""

    binary = "k3d"
    error_cls = K3dError

    def version(self) -> str:
        cp = self._run(["version"])
        return (cp.stdout or "").splitlines()[0] if cp.stdout else ""

    def cluster_names(self) -> List[str]:
        cp = self._run(["cluster", "list", "-o", "json"])
        try:
            data = json.loads(cp.stdout or "[]")
        except json.JSONDecodeError as e:
            raise K3dError(cp.args, cp.returncode, f"unparseable cluster list: {e}\n{cp.stdout}")
        return [c.get("name", "") for c in data or []]

    def cluster_exists(self, name: str) -> bool:
        return name in self.cluster_names()

    def create_cluster(self, config_path: Path) -> None:
        # streamed: k3d create takes 1-2 minutes
        self._run(
            ["cluster", "create", "--config", str(config_path)],
            stream=True,
            mutating=True,
        )

    def delete_cluster(self, name: str) -> None:
        self._run(["cluster", "delete", name], stream=True, mutating=True)

    def cluster_listing(self, name: str) -> str:
        """Human readable `k3d cluster list` rows for `name`."""
        cp = self._run(["cluster", "list"])
        rows = (cp.stdout or "").splitlines()
        matching = [r for r in rows[1:] if r.split()[:1] == [name]]
        return "\n".join(rows[:1] + matching)


class DockerCliRunner(CliRunner):
    """Only used to probe that the docker daemon k3d runs on is up."""

    binary = "docker"

    def running(self) -> bool:
        return self.succeeds(["info"])
