# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/utils/cli_runner.py
from __future__ import annotations

import logging
import shutil
import subprocess
from typing import List, Optional, Type

from ..errors import CommandError
from .execution import ExecutionContext

log = logging.getLogger("k3dflux")


class CliRunner:
    """
    A pragmatic wrapper around an external CLI (k3d, kubectl, flux).
    - Subclasses set `binary` and `error_cls`.
    - Testable by mocking subprocess.run / subprocess.Popen.
    - Failures carry the tool's own output verbatim.
    """

    binary: str = ""
    error_cls: Type[CommandError] = CommandError

    def __init__(self, ctx: Optional[ExecutionContext] = None, env: dict[str, str] | None = None):
        self.ctx = ctx or ExecutionContext()
        self.env = env or {}

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def _base(self) -> list[str]:
        return [self.binary]

    def _run(
        self,
        args: List[str],
        *,
        allow_rc: set[int] | None = None,
        capture: bool = True,
        stream: bool = False,
        mutating: bool = False,
        input: str | None = None,
    ) -> subprocess.CompletedProcess:
        """
        Run a command.
        If `stream=True`, stream combined output live to the console.
        If `capture=True`, capture and return output instead.
        Mutating commands are only logged when running in dry-run mode.
        """
        allow_rc = allow_rc or {0}
        argv = self._base() + list(args)

        if mutating and self.ctx.skip(" ".join(argv)):
            return subprocess.CompletedProcess(argv, 0, "", "")

        log.debug("$ %s", " ".join(argv))

        if stream:
            process = subprocess.Popen(
                argv,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=self.env or None,
            )
            lines = []
            for line in iter(process.stdout.readline, ""):
                print(line, end="")
                lines.append(line)
            process.wait()
            cp = subprocess.CompletedProcess(argv, process.returncode, "".join(lines), "")
        else:
            cp = subprocess.run(
                argv,
                check=False,
                text=True,
                capture_output=capture,
                input=input,
                env=self.env or None,
            )

        if cp.returncode not in allow_rc:
            output = (cp.stderr or "") or (cp.stdout or "")
            raise self.error_cls(argv, cp.returncode, output)
        return cp

    def succeeds(self, args: List[str]) -> bool:
        """Run a read-only probe and report whether it exited 0."""
        try:
            self._run(args)
        except (self.error_cls, OSError) as exc:
            log.debug("probe failed: %s", exc)
            return False
        return True
