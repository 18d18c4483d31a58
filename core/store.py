"""
core/store.py - Keyed in-memory stores for process-wide state.

Only three things are shared across concurrent intents:
- ProviderConfig per provider id (EMA stats)
- RiskState per caller id (daily loss accumulator)
- the set of recorded intent ids

Each store serializes writers per key with an asyncio.Lock so two intents
finishing against the same provider or caller never lose an update.
Stores are injected; swap in a transactional backend with the same
methods for production.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Dict, Iterable, Optional

from core.constants import ProviderKind
from core.logging import get_logger
from core.math import ema_update
from core.models import ProviderConfig, RiskState
from core.time import Clock, SystemClock

logger = get_logger(__name__)


class KeyedLocks:
    """Lazily created asyncio.Lock per key."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


# =============================================================================
# PROVIDER STATS
# =============================================================================

class ProviderStatsStore:
    """
    Registry of venue and lender configs keyed by provider id.

    Readers get copies; all mutation goes through record_attempt() or the
    configuration setters.
    """

    def __init__(
        self,
        configs: Optional[Iterable[ProviderConfig]] = None,
        clock: Optional[Clock] = None,
    ):
        self._configs: Dict[str, ProviderConfig] = {}
        self._locks = KeyedLocks()
        self._clock = clock or SystemClock()
        for config in configs or []:
            self.register(config)

    def register(self, config: ProviderConfig) -> None:
        """Add or replace a provider config."""
        self._configs[config.provider_id] = replace(config)

    def ensure(self, provider_id: str, kind: ProviderKind) -> ProviderConfig:
        """Register a default config if the provider is unknown."""
        if provider_id not in self._configs:
            self._configs[provider_id] = ProviderConfig(provider_id=provider_id, kind=kind)
        return self.get(provider_id)

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._configs

    def get(self, provider_id: str) -> ProviderConfig:
        """Copy of the provider's config (defaults for unknown ids)."""
        config = self._configs.get(provider_id)
        if config is None:
            return ProviderConfig(provider_id=provider_id)
        return replace(config)

    def is_active(self, provider_id: str) -> bool:
        config = self._configs.get(provider_id)
        return config.active if config is not None else True

    def set_active(self, provider_id: str, active: bool) -> None:
        config = self._configs.setdefault(provider_id, ProviderConfig(provider_id=provider_id))
        config.active = active

    def set_priority(self, provider_id: str, priority: int) -> None:
        config = self._configs.setdefault(provider_id, ProviderConfig(provider_id=provider_id))
        config.priority = priority

    async def record_attempt(
        self,
        provider_id: str,
        success: bool,
        gas_used: int,
        kind: ProviderKind = ProviderKind.LENDER,
    ) -> ProviderConfig:
        """
        Fold one execution attempt into the provider's EMA stats.

        success_rate_bps = (rate * 9 + (10000 if success else 0)) // 10
        avg_gas_used     = (avg * 9 + gas_used) // 10
        """
        async with self._locks.get(provider_id):
            config = self._configs.get(provider_id)
            if config is None:
                config = ProviderConfig(provider_id=provider_id, kind=kind)
                self._configs[provider_id] = config

            config.success_rate_bps = ema_update(
                config.success_rate_bps, 10_000 if success else 0
            )
            config.avg_gas_used = ema_update(config.avg_gas_used, gas_used)
            config.total_executions += 1
            if not success:
                config.total_failed += 1
            config.last_executed_at = self._clock.now()

            logger.debug(
                "Provider stats updated",
                extra={"context": config.to_dict()},
            )
            return replace(config)

    def snapshot(self, kind: Optional[ProviderKind] = None) -> Dict[str, ProviderConfig]:
        """Copies of all configs, optionally filtered by kind."""
        return {
            pid: replace(cfg)
            for pid, cfg in self._configs.items()
            if kind is None or cfg.kind == kind
        }


# =============================================================================
# RISK STATE
# =============================================================================

class RiskStateStore:
    """Per-caller RiskState with single-writer-per-caller locking."""

    def __init__(self):
        self._states: Dict[str, RiskState] = {}
        self._locks = KeyedLocks()

    def get(self, caller_id: str) -> RiskState:
        """Copy of the caller's state (zeroed for unknown callers)."""
        state = self._states.get(caller_id)
        if state is None:
            return RiskState(caller_id=caller_id)
        return replace(state)

    @asynccontextmanager
    async def locked(self, caller_id: str) -> AsyncIterator[RiskState]:
        """Hold the caller's lock and yield the live, mutable state."""
        async with self._locks.get(caller_id):
            state = self._states.get(caller_id)
            if state is None:
                state = RiskState(caller_id=caller_id)
                self._states[caller_id] = state
            yield state


# =============================================================================
# INTENT REGISTRY
# =============================================================================

class IntentRegistry:
    """Set of intent ids that passed validation."""

    def __init__(self, clock: Optional[Clock] = None):
        self._recorded: Dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or SystemClock()

    def __contains__(self, intent_id: str) -> bool:
        return intent_id in self._recorded

    def __len__(self) -> int:
        return len(self._recorded)

    async def record(self, intent_id: str) -> bool:
        """
        Atomically record an id.

        Returns:
            False if the id was already recorded
        """
        async with self._lock:
            if intent_id in self._recorded:
                return False
            self._recorded[intent_id] = self._clock.now()
            return True

    def recorded_at(self, intent_id: str) -> Optional[float]:
        return self._recorded.get(intent_id)
