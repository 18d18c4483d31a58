"""
risk - Loss limits and system pause.
"""

from risk.governor import RiskDecision, RiskGovernor, RiskReservation
from risk.kill_switch import KillSwitch

__all__ = [
    "KillSwitch",
    "RiskDecision",
    "RiskGovernor",
    "RiskReservation",
]
