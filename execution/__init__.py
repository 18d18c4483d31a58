# PATH: execution/__init__.py
"""
flashroute execution layer.

- state_machine: Intent lifecycle stages with deadline checks
- coordinator: ExecutionCoordinator pipeline
- journal: Outcome records and per-caller profit book
"""

from execution.coordinator import REJECTION_CODES, ExecutionCoordinator
from execution.journal import ExecutionJournal, JournalRecord
from execution.state_machine import (
    TERMINAL_STAGES,
    VALID_TRANSITIONS,
    IntentStage,
    IntentStateMachine,
)

__all__ = [
    "REJECTION_CODES",
    "TERMINAL_STAGES",
    "VALID_TRANSITIONS",
    "ExecutionCoordinator",
    "ExecutionJournal",
    "IntentStage",
    "IntentStateMachine",
    "JournalRecord",
]
