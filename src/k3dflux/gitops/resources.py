# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/gitops/resources.py
from __future__ import annotations

from ..config.models import GitOpsParams

SOURCE_API_VERSION = "source.toolkit.fluxcd.io/v1"
SYNC_API_VERSION = "kustomize.toolkit.fluxcd.io/v1"


def git_source(params: GitOpsParams) -> dict:
    """GitRepository pointing at the public, unauthenticated repository URL (no secretRef)."""
    return {
        "apiVersion": SOURCE_API_VERSION,
        "kind": "GitRepository",
        "metadata": {"name": params.name, "namespace": params.namespace},
        "spec": {
            "interval": params.interval,
            "url": params.url,
            "ref": {"branch": params.branch},
        },
    }


def git_sync(params: GitOpsParams) -> dict:
    """
    Kustomization applying `params.path` from the source.
    prune=True: objects removed from the repository are deleted from the cluster.
    """
    path = params.path if params.path.startswith("./") else f"./{params.path}"
    return {
        "apiVersion": SYNC_API_VERSION,
        "kind": "Kustomization",
        "metadata": {"name": params.name, "namespace": params.namespace},
        "spec": {
            "interval": params.interval,
            "path": path,
            "prune": True,
            "sourceRef": {"kind": "GitRepository", "name": params.name},
        },
    }
