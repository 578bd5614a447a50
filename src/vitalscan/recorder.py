"""Session recorder: per-analysis CSV rows and a JSON report file.

Rows go through a bounded queue to a daemon writer thread so the sample path
never waits on disk I/O.
"""

from __future__ import annotations

import csv
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Full, Queue
from typing import IO, Any, Optional

from .pipeline import Update

logger = logging.getLogger(__name__)

COLUMNS = ["t", "phase", "bpm", "rmssd", "snr", "fs", "accepted"]


@dataclass
class RecorderConfig:
    out_dir: Path
    base_name: str = "session"
    queue_size: int = 1024


class SessionRecorder:
    """Write analysis updates to ``<base>.csv`` and the report to ``<base>.json``."""

    def __init__(self, cfg: RecorderConfig) -> None:
        self.cfg = cfg
        self.cfg.out_dir.mkdir(parents=True, exist_ok=True)
        self.csv_path = self.cfg.out_dir / f"{self.cfg.base_name}.csv"
        self.meta_path = self.cfg.out_dir / f"{self.cfg.base_name}.json"
        self._file: Optional[IO[str]] = None
        self._writer: Any = None
        self._queue: "Queue[Optional[list]]" = Queue(maxsize=cfg.queue_size)
        self._worker: Optional[threading.Thread] = None
        self.dropped = 0

    def __enter__(self) -> "SessionRecorder":
        self.open()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def open(self) -> None:
        self._file = self.csv_path.open("w", newline="")
        self._writer = csv.writer(self._file)
        self._writer.writerow(COLUMNS)
        self._worker = threading.Thread(target=self._loop, daemon=True)
        self._worker.start()

    def record(self, t: float, update: Update) -> None:
        """Queue one row if ``update`` carries an analysis estimate."""
        if self._writer is None:
            raise RuntimeError("Recorder not opened")
        est = update.estimate
        if est is None:
            return
        row = [
            f"{t:.3f}",
            update.phase.value,
            f"{est.bpm:.2f}",
            f"{est.rmssd:.2f}",
            f"{est.snr:.3f}",
            f"{est.fs:.2f}",
            int(est.accepted),
        ]
        try:
            self._queue.put_nowait(row)
        except Full:
            self.dropped += 1

    def write_meta(self, meta: dict) -> None:
        self.meta_path.write_text(json.dumps(meta, ensure_ascii=False, indent=2))

    def close(self) -> None:
        if self._worker is not None:
            self._queue.put(None)
            self._worker.join(timeout=2.0)
            self._worker = None
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None
        if self.dropped:
            logger.warning("recorder dropped %d rows (queue full)", self.dropped)

    def _loop(self) -> None:
        assert self._writer is not None and self._file is not None
        while True:
            try:
                item = self._queue.get(timeout=0.5)
            except Empty:
                self._file.flush()
                continue
            if item is None:
                break
            self._writer.writerow(item)
        self._file.flush()
