# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/k3dflux/observers/dispatcher.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol

from .events import BaseEvent

log = logging.getLogger("k3dflux")


class Observer(Protocol):
    def notify(self, event: BaseEvent) -> None: ...


class EventBus:
    """Fans run and step events out to observers, in registration order."""

    def __init__(self, observers: Optional[Iterable[Observer]] = None):
        self._observers: List[Observer] = list(observers or [])

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception as exc:
                # a broken observer never aborts provisioning
                log.debug("observer %r failed on %s: %s", ob, type(event).__name__, exc)
