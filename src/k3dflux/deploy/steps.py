# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/deploy/steps.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class FailurePolicy(str, Enum):
    FATAL = "fatal"              # abort the run, no rollback
    BEST_EFFORT = "best-effort"  # warn and continue


@dataclass(frozen=True)
class Step:
    """
    One named unit of provisioning work.

    The failure policy is data on the step rather than a branch in the
    caller, so a plan can be inspected (and tested) before it runs.
    `hint` is the suggested next action shown when a best-effort step fails.
    """

    name: str
    title: str
    action: Callable[[], None]
    policy: FailurePolicy = FailurePolicy.FATAL
    hint: Optional[str] = None

    @property
    def fatal(self) -> bool:
        return self.policy is FailurePolicy.FATAL


def fatal(name: str, title: str, action: Callable[[], None]) -> Step:
    return Step(name=name, title=title, action=action, policy=FailurePolicy.FATAL)


def best_effort(name: str, title: str, action: Callable[[], None], hint: Optional[str] = None) -> Step:
    return Step(name=name, title=title, action=action, policy=FailurePolicy.BEST_EFFORT, hint=hint)
