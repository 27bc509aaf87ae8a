# src/k3dflux/observers/jsonfile.py
from __future__ import annotations

import json
from pathlib import Path

from .events import BaseEvent


class JsonFileObserver:
    """
    Machine readable run record: one JSON object per event in
    `<log dir>/<run_id>.jsonl`, numbered in emission order.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._seq = 0

    def notify(self, event: BaseEvent) -> None:
        self._seq += 1
        record = {"seq": self._seq, "event": type(event).__name__, **event.dict()}
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")
