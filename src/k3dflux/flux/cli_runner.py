# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/flux/cli_runner.py
from __future__ import annotations

from ..config.models import GitOpsParams
from ..errors import FluxError
from ..utils.cli_runner import CliRunner


class FluxCliRunner(CliRunner):
    """
    Wrapper around the `flux` CLI.
    - `bootstrap github` installs controllers with write-capable credentials.
    - `install` installs controllers without any credential material.
    """

    binary = "flux"
    error_cls = FluxError

    def bootstrap_github(self, params: GitOpsParams) -> None:
        args = [
            "bootstrap",
            "github",
            f"--owner={params.owner}",
            f"--repository={params.repository}",
            f"--branch={params.branch}",
            f"--path={params.path}",
            f"--private={str(params.private).lower()}",
            f"--personal={str(params.personal).lower()}",
        ]
        if params.components_extra:
            args.append(f"--components-extra={','.join(params.components_extra)}")
        # stream: flux reports each controller as it comes up
        self._run(args, stream=True, mutating=True)

    def install(self, params: GitOpsParams) -> None:
        args = ["install", f"--namespace={params.namespace}"]
        if params.components_extra:
            args.append(f"--components-extra={','.join(params.components_extra)}")
        self._run(args, stream=True, mutating=True)
