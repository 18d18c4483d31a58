# PATH: execution/journal.py
"""
Execution journal.

Post-intent record keeping:
- One record per terminal ExecutionResult
- Per-caller realized profit
- Totals (completed / rejected / failed, profit, fees, gas)
- JSON export
"""

import json
from collections import Counter, defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.constants import ExecutionStatus
from core.models import ArbitrageIntent, ExecutionResult
from core.time import now_iso


@dataclass
class JournalRecord:
    """Terminal outcome of one intent."""
    intent_id: str
    caller_id: str
    token_in: str
    token_out: str
    amount: int
    status: str
    success: bool
    stage: Optional[str] = None
    used_provider_id: Optional[str] = None
    venue_id: Optional[str] = None
    actual_fee: int = 0
    gas_used: int = 0
    realized_profit: int = 0
    failed_attempts: int = 0
    error_reason: Optional[str] = None
    error_detail: Optional[str] = None
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent_id": self.intent_id,
            "caller_id": self.caller_id,
            "token_in": self.token_in,
            "token_out": self.token_out,
            # Amounts as strings (wei)
            "amount": str(self.amount),
            "status": self.status,
            "success": self.success,
            "stage": self.stage,
            "used_provider_id": self.used_provider_id,
            "venue_id": self.venue_id,
            "actual_fee": str(self.actual_fee),
            "gas_used": self.gas_used,
            "realized_profit": str(self.realized_profit),
            "failed_attempts": self.failed_attempts,
            "error_reason": self.error_reason,
            "error_detail": self.error_detail,
            "timestamp": self.timestamp,
        }


class ExecutionJournal:
    """In-memory book of intent outcomes."""

    def __init__(self, output_dir: Optional[Path] = None):
        self._output_dir = output_dir
        self._records: List[JournalRecord] = []
        self._caller_profits: Dict[str, int] = defaultdict(int)
        self._status_counts: Counter = Counter()
        self._reject_reasons: Counter = Counter()
        self._total_profit = 0
        self._total_fees = 0
        self._total_gas = 0

    @property
    def records(self) -> List[JournalRecord]:
        return list(self._records)

    @property
    def record_count(self) -> int:
        return len(self._records)

    @property
    def total_profit(self) -> int:
        return self._total_profit

    def caller_profit(self, caller_id: str) -> int:
        """Realized profit booked for a caller (negative = net loss)."""
        return self._caller_profits.get(caller_id, 0)

    def record(
        self,
        intent: ArbitrageIntent,
        result: ExecutionResult,
        venue_id: Optional[str] = None,
    ) -> JournalRecord:
        """Book a terminal result."""
        status = result.status.value if result.status else (
            ExecutionStatus.COMPLETED.value if result.success else ExecutionStatus.FAILED.value
        )
        record = JournalRecord(
            intent_id=intent.id,
            caller_id=intent.caller_id,
            token_in=intent.token_in,
            token_out=intent.token_out,
            amount=intent.amount,
            status=status,
            success=result.success,
            stage=result.stage,
            used_provider_id=result.used_provider_id,
            venue_id=venue_id,
            actual_fee=result.actual_fee,
            gas_used=result.gas_used,
            realized_profit=result.realized_profit,
            failed_attempts=len(result.failed_attempts),
            error_reason=result.error_reason,
            error_detail=result.error_detail,
        )
        self._records.append(record)

        self._status_counts[status] += 1
        if result.error_reason:
            self._reject_reasons[result.error_reason] += 1
        self._caller_profits[intent.caller_id] += result.realized_profit
        self._total_profit += result.realized_profit
        self._total_fees += result.actual_fee
        self._total_gas += result.gas_used
        return record

    def get_summary(self) -> Dict[str, Any]:
        return {
            "record_count": self.record_count,
            "completed": self._status_counts.get(ExecutionStatus.COMPLETED.value, 0),
            "rejected": self._status_counts.get(ExecutionStatus.REJECTED.value, 0),
            "failed": self._status_counts.get(ExecutionStatus.FAILED.value, 0),
            "reasons": dict(self._reject_reasons),
            "total_profit": str(self._total_profit),
            "total_fees": str(self._total_fees),
            "total_gas": self._total_gas,
            "caller_profits": {k: str(v) for k, v in self._caller_profits.items()},
        }

    def save(self, path: Optional[Path] = None) -> Optional[Path]:
        """
        Write summary and records to JSON.

        Returns:
            Written path, or None when no path/output_dir is configured
        """
        output_path = path or (self._output_dir / "execution_journal.json" if self._output_dir else None)
        if not output_path:
            return None

        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "summary": self.get_summary(),
            "records": [r.to_dict() for r in self._records],
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

        return output_path
