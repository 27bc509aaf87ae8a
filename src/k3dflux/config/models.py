# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/config/models.py

import os
from enum import Enum
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field


class GitOpsMode(str, Enum):
    NONE = "none"
    ADMIN = "admin"
    READ_ONLY = "read-only"


class HostsEntry(BaseModel):
    address: str
    hostname: str


def _default_app_hosts() -> List[HostsEntry]:
    return [
        HostsEntry(address="0.0.0.0", hostname="app01.k8s.local"),
        HostsEntry(address="0.0.0.0", hostname="*.k8s.local"),
    ]


class ClusterSpec(BaseModel):
    """Local k3d cluster; node topology lives in the k3d config file."""

    name: str = "k3d-local"
    config_path: Path = Path("k3d-local-cluster.yaml")
    api_host: str = "k3d-local.k8s.local"
    api_port: int = 6443
    hosts_marker: str = "# k3d-local-cluster"
    hosts_file: Path = Path("/etc/hosts")
    app_hosts: List[HostsEntry] = Field(default_factory=_default_app_hosts)
    node_ready_timeout_seconds: int = 120

    def hosts_entries(self) -> List[HostsEntry]:
        return [HostsEntry(address="127.0.0.1", hostname=self.api_host)] + list(self.app_hosts)


class GitOpsParams(BaseModel):
    owner: str = "akafrmn"
    repository: str = "ti-httpbin"
    branch: str = "main"
    path: str = "clusters/docker-desktop"
    personal: bool = True
    private: bool = False
    components_extra: List[str] = Field(default_factory=lambda: ["source-watcher"])
    namespace: str = "flux-system"
    name: str = "flux-system"          # GitRepository and Kustomization name
    interval: str = "1m"
    source_timeout_seconds: int = 120
    sync_timeout_seconds: int = 300

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repository}"


class BootstrapConfig(BaseModel):
    cluster: ClusterSpec = Field(default_factory=ClusterSpec)
    gitops: GitOpsParams = Field(default_factory=GitOpsParams)


class ForwardSettings(BaseModel):
    namespace: str = "example-app"
    service: str = "httpbin"
    default_port: int = 8080
    target_port: int = 80
    log_dir: Path = Path("/tmp")
    startup_grace_seconds: float = 2.0
    connect_timeout_seconds: float = 5.0
    http_timeout_seconds: float = 10.0

    def log_path(self, port: int) -> Path:
        return self.log_dir / f"gateway-forward-{port}.log"

    @classmethod
    def from_env(cls, environ=None) -> "ForwardSettings":
        """Defaults overridden by GATEWAY_* environment variables."""
        environ = os.environ if environ is None else environ
        mapping = {
            "GATEWAY_NAMESPACE": "namespace",
            "GATEWAY_SERVICE": "service",
            "GATEWAY_DEFAULT_PORT": "default_port",
            "GATEWAY_TARGET_PORT": "target_port",
            "GATEWAY_LOG_DIR": "log_dir",
        }
        data = {field: environ[var] for var, field in mapping.items() if environ.get(var)}
        return cls.model_validate(data)
