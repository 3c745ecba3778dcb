from __future__ import annotations

import csv
import os
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

CSV_COLUMNS = [
    "timestamp",
    "component",
    "target",
    "outcome",
    "latency_ms",
]

_csv_lock = threading.Lock()


def _csv_path() -> Optional[Path]:
    raw = os.getenv("METRICS_CSV")
    return Path(raw) if raw else None


def _ensure_csv_header(path: Path) -> None:
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        csv.DictWriter(f, fieldnames=CSV_COLUMNS).writeheader()


def log_metric(
    component: str,
    target: Optional[str],
    *,
    latency_ms: Optional[float] = None,
    outcome: str = "ok",
) -> Dict[str, Any]:
    """Log a metric line and append it to ``METRICS_CSV`` when configured (best effort)."""
    row = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "component": component,
        "target": target or "",
        "outcome": outcome,
        "latency_ms": round(latency_ms, 3) if latency_ms is not None else None,
    }
    logger.info("metric", extra=row)

    path = _csv_path()
    if path is None:
        return row
    try:
        with _csv_lock:
            _ensure_csv_header(path)
            with path.open("a", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
                writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
    except OSError as exc:
        # Metrics must never break a request.
        logger.warning("metric_write_failed", extra={"error": str(exc)})
    return row


@dataclass
class MetricTimer:
    component: str
    target: Optional[str]
    outcome: str = "ok"
    _start: float = field(default_factory=time.perf_counter)

    def fail(self, outcome: str = "error") -> None:
        self.outcome = outcome

    def done(self) -> Dict[str, Any]:
        latency_ms = (time.perf_counter() - self._start) * 1000
        return log_metric(self.component, self.target, latency_ms=latency_ms, outcome=self.outcome)


@contextmanager
def timed_operation(component: str, target: Optional[str]) -> Iterator[MetricTimer]:
    """Log latency for the wrapped block; an escaping exception marks the outcome as ``error``."""
    timer = MetricTimer(component=component, target=target)
    try:
        yield timer
    except Exception:
        timer.fail()
        raise
    finally:
        timer.done()


def read_metrics(limit: int = 500) -> List[Dict[str, Any]]:
    """Return the most recent rows of the metrics CSV, oldest first."""
    path = _csv_path()
    if path is None or not path.exists():
        return []
    with path.open("r", newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    return rows[-limit:]
