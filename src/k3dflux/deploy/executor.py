# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..errors import FatalProvisioningError
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    RunStarted,
    RunSummary,
    StepStarted,
    StepSucceeded,
    StepWarned,
    StepFailed,
)
from .steps import Step

log = logging.getLogger("k3dflux")


@dataclass
class StepOutcome:
    name: str
    status: str                 # "OK" | "WARNED" | "FAILED"
    duration_ms: int = 0
    error: Optional[str] = None


@dataclass
class RunReport:
    outcomes: List[StepOutcome] = field(default_factory=list)

    def add(self, outcome: StepOutcome) -> None:
        self.outcomes.append(outcome)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def aborted(self) -> bool:
        return self.count("FAILED") > 0

    @property
    def warnings(self) -> List[StepOutcome]:
        return [o for o in self.outcomes if o.status == "WARNED"]

    def summary(self) -> str:
        return f"OK={self.count('OK')} WARNED={self.count('WARNED')} FAILED={self.count('FAILED')}"

    def raise_for_failure(self) -> None:
        for o in self.outcomes:
            if o.status == "FAILED":
                raise FatalProvisioningError(o.name, o.error or "")


def run_steps(
    steps: Sequence[Step],
    *,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> RunReport:
    """
    Run steps in order. A FATAL failure stops the run where it is (nothing is
    rolled back); a BEST_EFFORT failure is recorded as a warning and the run
    continues.
    """
    bus = bus or EventBus()
    ctx = run_ctx or new_ctx(cluster="-", mode="-")
    report = RunReport()

    bus.emit(RunStarted(steps=[s.name for s in steps], **ctx))

    for step in steps:
        bus.emit(StepStarted(name=step.name, title=step.title, policy=step.policy.value, **ctx))
        t0 = time.time()
        try:
            step.action()
        except Exception as e:
            duration_ms = int((time.time() - t0) * 1000)
            if step.fatal:
                report.add(StepOutcome(step.name, "FAILED", duration_ms, str(e)))
                bus.emit(StepFailed(name=step.name, error=str(e), **ctx))
                log.debug("step %s aborted the run", step.name, exc_info=True)
                break
            report.add(StepOutcome(step.name, "WARNED", duration_ms, str(e)))
            bus.emit(StepWarned(name=step.name, error=str(e), hint=step.hint, **ctx))
            continue

        duration_ms = int((time.time() - t0) * 1000)
        report.add(StepOutcome(step.name, "OK", duration_ms))
        bus.emit(StepSucceeded(name=step.name, title=step.title, duration_ms=duration_ms, **ctx))

    bus.emit(
        RunSummary(
            ok=report.count("OK"),
            warned=report.count("WARNED"),
            failed=report.count("FAILED"),
            aborted=report.aborted,
            **ctx,
        )
    )
    return report
