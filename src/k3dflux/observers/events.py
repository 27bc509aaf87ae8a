# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import uuid

@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single invocation
    cluster: str      # k3d cluster name
    mode: str         # gitops mode for the run

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(cluster: str, mode: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "cluster": cluster,
        "mode": mode,
    }


# ----- Run -----

@dataclass(frozen=True)
class RunStarted(BaseEvent):
    steps: list

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    ok: int
    warned: int
    failed: int
    aborted: bool


# ----- Per-step lifecycle -----

@dataclass(frozen=True)
class StepStarted(BaseEvent):
    name: str
    title: str
    policy: str

@dataclass(frozen=True)
class StepSucceeded(BaseEvent):
    name: str
    title: str
    duration_ms: int

@dataclass(frozen=True)
class StepWarned(BaseEvent):
    name: str
    error: str
    hint: Optional[str] = None

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    name: str
    error: str
