# src/k3dflux/observers/logger.py
from __future__ import annotations

import logging

from .events import BaseEvent

# anything not listed logs at INFO
_LEVELS = {
    "StepWarned": logging.WARNING,
    "StepFailed": logging.ERROR,
}


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        etype = type(event).__name__
        fields = {k: v for k, v in event.dict().items() if k not in ("ts", "run_id")}
        detail = " ".join(f"{k}={v}" for k, v in fields.items())
        self.logger.log(_LEVELS.get(etype, logging.INFO), "[%s] %s", etype, detail)
