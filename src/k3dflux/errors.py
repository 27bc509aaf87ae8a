# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/errors.py
from __future__ import annotations

from typing import Optional, Sequence


class K3dfluxError(RuntimeError):
    """Base class for every failure raised by k3dflux."""


class UsageError(K3dfluxError):
    """Invalid invocation (unknown mode, missing arguments)."""


class PreconditionError(K3dfluxError):
    """A required tool, file, cluster object or local port is not available."""


class CommandError(K3dfluxError):
    """An external CLI returned a non-zero exit code."""

    def __init__(self, argv: Sequence[str], returncode: int, output: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        msg = f"{self.argv[0]} failed (rc={returncode}) for {' '.join(self.argv)}"
        if output.strip():
            msg += f"\n{output.rstrip()}"
        super().__init__(msg)


class K3dError(CommandError):
    pass


class KubectlError(CommandError):
    pass


class FluxError(CommandError):
    pass


class ConvergenceTimeout(K3dfluxError):
    """A GitOps object did not become Ready within its bound."""

    def __init__(self, kind: str, name: str, timeout_seconds: int, detail: str = ""):
        self.kind = kind
        self.name = name
        self.timeout_seconds = timeout_seconds
        msg = f"{kind}/{name} not ready after {timeout_seconds}s"
        if detail.strip():
            msg += f": {detail.strip()}"
        super().__init__(msg)


class FatalProvisioningError(K3dfluxError):
    """A fatal step failed; the run stops and nothing is rolled back."""

    def __init__(self, step: str, error: str):
        self.step = step
        self.error = error
        super().__init__(f"step '{step}' failed: {error}")


class SessionStartError(K3dfluxError):
    """The port-forward process exited during its startup grace period."""

    def __init__(self, port: int, log_tail: Optional[str] = None):
        self.port = port
        self.log_tail = log_tail or ""
        super().__init__(f"Failed to start port-forward on port {port}")
