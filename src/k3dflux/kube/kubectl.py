# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/kube/kubectl.py
from __future__ import annotations

import logging
from typing import Iterable

import yaml

from ..errors import KubectlError
from ..utils.cli_runner import CliRunner

log = logging.getLogger("k3dflux")


class KubectlRunner(CliRunner):
    """
    kubectl runner executed against the current kubeconfig context.
    """

    binary = "kubectl"
    error_cls = KubectlError

    def __init__(self, *args, context: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.context = context

    def _base(self) -> list[str]:
        cmd = ["kubectl"]
        if self.context:
            cmd += ["--context", self.context]
        return cmd

    # ------------------------- probes -------------------------

    def cluster_reachable(self) -> bool:
        return self.succeeds(["cluster-info"])

    def resource_exists(
        self,
        *,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> bool:
        """
        Check whether a Kubernetes resource exists.
        """
        args = ["get", kind, name]
        if namespace:
            args += ["-n", namespace]
        return self.succeeds(args)

    def namespace_exists(self, namespace: str) -> bool:
        return self.resource_exists(kind="namespace", name=namespace)

    def service_exists(self, name: str, namespace: str) -> bool:
        return self.resource_exists(kind="service", name=name, namespace=namespace)

    # ------------------------- waits -------------------------

    def wait_nodes_ready(self, timeout_seconds: int = 120) -> None:
        self._run(
            ["wait", "--for=condition=Ready", "nodes", "--all", f"--timeout={timeout_seconds}s"],
            mutating=True,
        )

    def wait_for_condition(
        self,
        *,
        kind: str,
        name: str,
        namespace: str,
        condition_type: str = "Ready",
        timeout_seconds: int = 120,
    ) -> None:
        """
        Wrapper around:
        kubectl wait --for=condition=TYPE KIND/NAME
        """
        self._run(
            [
                "wait",
                f"--for=condition={condition_type}",
                f"{kind}/{name}",
                "-n",
                namespace,
                f"--timeout={timeout_seconds}s",
            ],
            mutating=True,
        )

    # ------------------------- apply -------------------------

    def apply_objects(self, objects: Iterable[dict]) -> None:
        objects = list(objects)
        if not objects:
            log.debug("[kubectl] apply skipped: no objects")
            return

        manifest = yaml.safe_dump_all(objects, sort_keys=False)
        self._run(["apply", "-f", "-"], input=manifest, mutating=True)

        for obj in objects:
            kind = obj.get("kind", "<unknown>")
            name = obj.get("metadata", {}).get("name", "<unknown>")
            ns = obj.get("metadata", {}).get("namespace", "default")
            log.info("[kubectl] applied %s/%s in %s", kind, name, ns)

    # ------------------------- reporting -------------------------

    def get_nodes_wide(self) -> str:
        return self._run(["get", "nodes", "-o", "wide"]).stdout

    def top_nodes(self) -> str:
        return self._run(["top", "nodes"]).stdout

    def current_context(self) -> str:
        return self._run(["config", "current-context"]).stdout.strip()

    def get_gitops_objects(self, namespace: str) -> str:
        return self._run(
            ["get", "gitrepositories.source.toolkit.fluxcd.io,kustomizations.kustomize.toolkit.fluxcd.io", "-n", namespace]
        ).stdout

    # ------------------------- port-forward -------------------------

    def port_forward_argv(self, *, namespace: str, service: str, port: int, target_port: int) -> list[str]:
        return self._base() + ["port-forward", "-n", namespace, f"svc/{service}", f"{port}:{target_port}"]
