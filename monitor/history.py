"""
Run history: append-only execution records with an optional NDJSON ledger.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field

from scanner.models import ExecutionRecord

logger = logging.getLogger(__name__)


@dataclass
class RunHistory:
    """
    Ordered execution records for one loop's lifetime. Records are only ever
    appended; readers get an immutable tuple view.
    """

    ledger_path: str = ""

    _records: list[ExecutionRecord] = field(default_factory=list, init=False, repr=False)
    _session_start: float = field(default_factory=time.time, init=False, repr=False)

    def append(self, record: ExecutionRecord) -> None:
        """Record one execution outcome and persist it when a ledger is set."""
        self._records.append(record)
        if self.ledger_path:
            try:
                self._append_ledger(record)
            except OSError:
                logger.error("History: ledger write to %s failed", self.ledger_path, exc_info=True)

        if record.success:
            logger.info(
                "History: +$%.2f (total $%.2f over %d executions, %.1f%% success)",
                record.realized_profit, self.total_profit, len(self), self.success_rate,
            )
        else:
            logger.info(
                "History: failed (%s) -- %d executions, %.1f%% success",
                record.error, len(self), self.success_rate,
            )

    def _append_ledger(self, record: ExecutionRecord) -> None:
        """Append one record to the ledger file (one JSON object per line)."""
        with open(self.ledger_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record.to_dict(), separators=(",", ":")) + "\n")

    @property
    def records(self) -> tuple[ExecutionRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def successful(self) -> int:
        return sum(1 for r in self._records if r.success)

    @property
    def failed(self) -> int:
        return len(self._records) - self.successful

    @property
    def total_profit(self) -> float:
        return sum(r.realized_profit for r in self._records if r.success)

    @property
    def success_rate(self) -> float:
        if not self._records:
            return 0.0
        return (self.successful / len(self._records)) * 100.0

    @property
    def session_duration_sec(self) -> float:
        return time.time() - self._session_start

    def summary(self) -> dict:
        """Aggregate counts and realized profit."""
        return {
            "total_executions": len(self._records),
            "successful": self.successful,
            "failed": self.failed,
            "success_rate_pct": round(self.success_rate, 1),
            "total_profit": round(self.total_profit, 2),
            "session_duration_sec": round(self.session_duration_sec, 0),
        }
