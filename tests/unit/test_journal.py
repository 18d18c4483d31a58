# PATH: tests/unit/test_journal.py
"""
Unit tests for ExecutionJournal.
"""

import json

import pytest

from core.constants import ErrorCode, ExecutionStatus
from core.models import ExecutionResult, FallbackAttempt
from execution.journal import ExecutionJournal


@pytest.fixture
def journal():
    return ExecutionJournal()


def _completed(intent, profit):
    return ExecutionResult(
        success=True,
        used_provider_id="aave",
        actual_fee=5,
        gas_used=100,
        intent_id=intent.id,
        status=ExecutionStatus.COMPLETED,
        stage="SETTLING",
        realized_profit=profit,
        attempts=(FallbackAttempt("balancer", False, reason="reverted"), FallbackAttempt("aave", True)),
    )


class TestRecording:
    def test_record_fields(self, journal, make_intent):
        intent = make_intent()

        record = journal.record(intent, _completed(intent, 1_000), venue_id="uni")

        assert record.intent_id == intent.id
        assert record.status == "COMPLETED"
        assert record.venue_id == "uni"
        assert record.failed_attempts == 1
        assert record.timestamp

    def test_totals_per_caller(self, journal, make_intent):
        alice = make_intent()
        bob = make_intent(caller_id="bob")

        journal.record(alice, _completed(alice, 1_000))
        journal.record(bob, _completed(bob, -200))
        journal.record(alice, ExecutionResult.rejected(alice.id, ErrorCode.DUPLICATE_INTENT))

        assert journal.record_count == 3
        assert journal.total_profit == 800
        assert journal.caller_profit("alice") == 1_000
        assert journal.caller_profit("bob") == -200
        assert journal.caller_profit("carol") == 0

    def test_summary(self, journal, make_intent):
        intent = make_intent()
        journal.record(intent, _completed(intent, 1_000))
        journal.record(intent, ExecutionResult.rejected(intent.id, ErrorCode.DUPLICATE_INTENT))

        summary = journal.get_summary()

        assert summary["completed"] == 1
        assert summary["rejected"] == 1
        assert summary["failed"] == 0
        assert summary["reasons"] == {"DUPLICATE_INTENT": 1}
        assert summary["total_profit"] == "1000"
        assert summary["total_fees"] == "5"
        assert summary["total_gas"] == 100


class TestSave:
    def test_save_without_destination(self, journal):
        assert journal.save() is None

    def test_save_to_output_dir(self, tmp_path, make_intent):
        journal = ExecutionJournal(output_dir=tmp_path / "out")
        intent = make_intent(amount=10**30)
        journal.record(intent, _completed(intent, 10**20))

        path = journal.save()

        assert path == tmp_path / "out" / "execution_journal.json"
        data = json.loads(path.read_text())
        assert data["summary"]["record_count"] == 1
        assert data["records"][0]["amount"] == str(10**30)
        assert data["records"][0]["realized_profit"] == str(10**20)
