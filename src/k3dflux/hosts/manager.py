# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/hosts/manager.py
from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional

from ..config.models import HostsEntry
from ..utils.execution import ExecutionContext

log = logging.getLogger("k3dflux")


class HostsFileManager:
    """
    Owns the marker-tagged block of a hosts file.

    Every mutation is remove-all-then-add-all: lines carrying the marker are
    dropped and the full set is appended again, so repeated runs never
    accumulate stale or duplicate entries. No lock is taken; another process
    editing the file between read and write can lose its change.
    """

    def __init__(
        self,
        path: Path = Path("/etc/hosts"),
        *,
        use_sudo: Optional[bool] = None,
        ctx: Optional[ExecutionContext] = None,
    ):
        self.path = Path(path)
        self.use_sudo = use_sudo
        self.ctx = ctx or ExecutionContext()

    def _read(self) -> str:
        return self.path.read_text() if self.path.exists() else ""

    def _needs_sudo(self) -> bool:
        if self.use_sudo is not None:
            return self.use_sudo
        target = self.path if self.path.exists() else self.path.parent
        return not os.access(target, os.W_OK)

    def _write(self, text: str) -> None:
        if self.ctx.skip(f"rewrite {self.path}"):
            return

        if not self._needs_sudo():
            self.path.write_text(text)
            return

        # write safely with sudo
        with tempfile.NamedTemporaryFile("w", delete=False) as tmp:
            tmp.write(text)
            tmp_path = tmp.name
        try:
            subprocess.run(["sudo", "cp", tmp_path, str(self.path)], check=True)
            subprocess.run(["sudo", "chmod", "644", str(self.path)], check=True)
        finally:
            os.unlink(tmp_path)

    def block(self, marker: str) -> List[str]:
        """Lines currently owned by `marker`."""
        return [ln for ln in self._read().splitlines() if marker in ln]

    def remove(self, marker: str) -> int:
        """
        Delete every line containing `marker`. Returns the number removed.
        Nothing to remove is success and leaves the file untouched.
        """
        text = self._read()
        lines = text.splitlines(keepends=True)
        kept = [ln for ln in lines if marker not in ln]
        removed = len(lines) - len(kept)

        if removed == 0:
            log.info("No existing hosts entries to remove (%s)", marker)
            return 0

        self._write("".join(kept))
        log.info("Removed %d hosts entries tagged %r from %s", removed, marker, self.path)
        return removed

    def add(self, marker: str, entries: Iterable[HostsEntry]) -> List[str]:
        """Append one `<address> <hostname> <marker>` line per entry."""
        new_lines = [f"{e.address} {e.hostname} {marker}" for e in entries]
        if not new_lines:
            return []

        text = self._read()
        if text and not text.endswith("\n"):
            text += "\n"
        text += "\n".join(new_lines) + "\n"

        self._write(text)
        log.info("Added %d hosts entries tagged %r to %s", len(new_lines), marker, self.path)
        return new_lines

    def replace(self, marker: str, entries: Iterable[HostsEntry]) -> List[str]:
        """Flush and rewrite the marker block."""
        self.remove(marker)
        return self.add(marker, entries)
