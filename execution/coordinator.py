# PATH: execution/coordinator.py
"""
ExecutionCoordinator - one intent, start to terminal result.

PIPELINE:
=========
  QUOTING        RouteOptimizer.find_optimal_route
  VALIDATING     pool snapshots + gas price + ProfitSimulator.simulate,
                 then the intent id is recorded (duplicate guard)
  RISK_CHECKING  RiskGovernor.check_and_reserve
  SELECTING      LoanAggregator.quote_all + select_optimal_provider,
                 then the reservation grows by the loan fee
  EXECUTING      LoanAggregator.execute_with_fallback (same quotes)
  SETTLING       Ledger.settle, venue stats, risk commit
=========

Every stage entry checks the deadline. Pipeline errors are typed
exceptions, converted here into exactly one terminal ExecutionResult;
nothing escapes submit().

Risk reservations are always resolved: released when no loan was drawn,
committed with the realized loss otherwise.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from config.settings import EngineConfig
from core.constants import ErrorCode, ExecutionStatus, ProviderKind
from core.exceptions import (
    DuplicateIntentError,
    ExecutionFailedError,
    FlashRouteError,
    InsufficientLiquidityError,
    InsufficientProfitError,
    NoProviderAvailableError,
    SlippageExceededError,
    SystemPausedError,
)
from core.interfaces import GasPriceSource, Ledger, PoolDataSource
from core.logging import get_logger
from core.math import apply_bps
from core.models import ArbitrageIntent, ExecutionResult, FallbackAttempt, ProfitCalculation, VenueQuote
from core.store import IntentRegistry, ProviderStatsStore
from core.time import Clock, SystemClock
from execution.journal import ExecutionJournal
from execution.state_machine import IntentStage, IntentStateMachine
from lending.aggregator import LoanAggregator
from risk.governor import RiskGovernor, RiskReservation
from routing.optimizer import RouteOptimizer
from simulation.gas import resolve_gas_price
from simulation.profit import ProfitSimulator

logger = get_logger(__name__)

# Codes that end an intent as REJECTED; everything else is FAILED
REJECTION_CODES = frozenset({
    ErrorCode.EXPIRED,
    ErrorCode.NO_ROUTE_FOUND,
    ErrorCode.INSUFFICIENT_LIQUIDITY,
    ErrorCode.INSUFFICIENT_PROFIT,
    ErrorCode.SLIPPAGE_EXCEEDED,
    ErrorCode.RISK_LIMIT_EXCEEDED,
    ErrorCode.DUPLICATE_INTENT,
    ErrorCode.SYSTEM_PAUSED,
})

_SIMULATION_ERRORS = {
    ErrorCode.INSUFFICIENT_PROFIT: InsufficientProfitError,
    ErrorCode.SLIPPAGE_EXCEEDED: SlippageExceededError,
    ErrorCode.SYSTEM_PAUSED: SystemPausedError,
}


@dataclass
class _IntentRun:
    """Intent-local working state."""
    route: Optional[VenueQuote] = None
    calc: Optional[ProfitCalculation] = None
    reservation: Optional[RiskReservation] = None
    loan: Optional[ExecutionResult] = None
    settlement: Optional[ExecutionResult] = None
    risk_resolved: bool = False
    realized_profit: int = 0

    @property
    def attempts(self) -> Tuple[FallbackAttempt, ...]:
        return self.loan.attempts if self.loan else ()

    @property
    def loan_drawn(self) -> bool:
        return self.loan is not None and self.loan.success


class ExecutionCoordinator:
    """
    Orchestrates routing, simulation, risk, lending and settlement.

    Args:
        optimizer: Venue route selection
        simulator: Profit gate
        governor: Loss limits
        aggregator: Flash-loan selection and execution
        ledger: Settlement collaborator
        pool_source: Resolves a route into pool snapshots
        gas_source: Gas oracle (fallback gas price when None or failing)
        registry: Recorded intent ids
        journal: Outcome book
        stats: Provider stats (default: the optimizer's store)
        config: Engine config (default: the simulator's config)
        clock: Time source for deadline checks
    """

    def __init__(
        self,
        optimizer: RouteOptimizer,
        simulator: ProfitSimulator,
        governor: RiskGovernor,
        aggregator: LoanAggregator,
        ledger: Ledger,
        pool_source: PoolDataSource,
        gas_source: Optional[GasPriceSource] = None,
        registry: Optional[IntentRegistry] = None,
        journal: Optional[ExecutionJournal] = None,
        stats: Optional[ProviderStatsStore] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.optimizer = optimizer
        self.simulator = simulator
        self.governor = governor
        self.aggregator = aggregator
        self.ledger = ledger
        self.pool_source = pool_source
        self.gas_source = gas_source
        self.clock = clock or SystemClock()
        self.registry = registry or IntentRegistry(self.clock)
        self.journal = journal or ExecutionJournal()
        self.stats = stats or optimizer.stats
        self.config = config or simulator.config

    # =========================================================================
    # PUBLIC
    # =========================================================================

    async def submit(self, intent: ArbitrageIntent) -> ExecutionResult:
        """
        Run an intent through the pipeline.

        Returns:
            Terminal ExecutionResult (never raises for pipeline errors)
        """
        if intent.id in self.registry:
            result = ExecutionResult.rejected(
                intent.id,
                ErrorCode.DUPLICATE_INTENT,
                stage=IntentStage.RECEIVED.value,
                detail="Intent id already recorded",
            )
            logger.info(
                "Duplicate intent rejected",
                extra={"context": {"intent_id": intent.id, "caller_id": intent.caller_id}},
            )
            self.journal.record(intent, result)
            return result

        machine = IntentStateMachine(intent, self.clock)
        run = _IntentRun()

        try:
            result = await self._run(intent, machine, run)
        except FlashRouteError as e:
            await self._resolve_risk(intent, run)
            result = self._error_result(intent, machine, run, e.code, e.message)
        except Exception as e:
            logger.exception(
                f"Unexpected pipeline error: {e}",
                extra={"context": {"intent_id": intent.id, "stage": machine.stage.value}},
            )
            await self._resolve_risk(intent, run)
            result = self._error_result(intent, machine, run, ErrorCode.EXECUTION_FAILED, str(e))

        self.journal.record(intent, result, venue_id=run.route.venue_id if run.route else None)
        return result

    def potential_loss(self, intent: ArbitrageIntent, calc: ProfitCalculation) -> int:
        """Worst-case loss before lending: gas + protocol fee + full slippage tolerance."""
        slippage_allowance = apply_bps(
            calc.suggested_amount, self.simulator.slippage_tolerance(intent)
        )
        return calc.gas_cost + calc.protocol_fee + slippage_allowance

    # =========================================================================
    # PIPELINE
    # =========================================================================

    async def _run(
        self,
        intent: ArbitrageIntent,
        machine: IntentStateMachine,
        run: _IntentRun,
    ) -> ExecutionResult:
        # QUOTING
        machine.advance(IntentStage.QUOTING)
        run.route = await self.optimizer.find_optimal_route(
            intent.token_in, intent.token_out, intent.amount
        )

        # VALIDATING
        machine.advance(IntentStage.VALIDATING)
        pools = await self._route_pools(run.route)
        gas_price = await resolve_gas_price(
            self.gas_source, self.config.gas, timeout=self.config.quote_timeout_seconds
        )
        run.calc = self.simulator.simulate(intent, pools, gas_price)
        if not run.calc.is_profitable:
            error_cls = _SIMULATION_ERRORS.get(run.calc.reject_code, InsufficientProfitError)
            raise error_cls(
                f"Route not executable: net_profit={run.calc.net_profit} "
                f"threshold={run.calc.profit_threshold} slippage_bps={run.calc.slippage_bps}",
                details={"venue_id": run.route.venue_id, "suggested_amount": run.calc.suggested_amount},
            )
        if not await self.registry.record(intent.id):
            raise DuplicateIntentError("Intent id already recorded")

        # RISK_CHECKING
        machine.advance(IntentStage.RISK_CHECKING)
        decision = await self.governor.check_and_reserve(
            intent.caller_id,
            self.potential_loss(intent, run.calc),
            notional=run.calc.suggested_amount,
            loan_financed=True,
        )
        decision.raise_for_rejection()
        run.reservation = decision.reservation

        # SELECTING
        machine.advance(IntentStage.SELECTING)
        amount = run.calc.suggested_amount
        quotes = await self.aggregator.quote_all(intent.token_in, amount)
        quote = await self.aggregator.select_optimal_provider(
            intent.token_in, amount, quotes=quotes
        )
        extended = await self.governor.extend(
            run.reservation, quote.fee_amount, notional=amount, loan_financed=True
        )
        extended.raise_for_rejection()
        run.reservation = extended.reservation

        # EXECUTING
        machine.advance(IntentStage.EXECUTING)
        run.loan = await self.aggregator.execute_with_fallback(
            intent.token_in,
            amount,
            self._payload(intent, run.route, run.calc),
            primary_provider_id=quote.provider_id,
            quotes=quotes,
        )
        if not run.loan.success:
            raise NoProviderAvailableError(
                run.loan.error_detail or "Fallback chain exhausted",
                details={"attempts": len(run.loan.attempts)},
            )

        # SETTLING
        machine.advance(IntentStage.SETTLING)
        return await self._settle(intent, machine, run)

    async def _route_pools(self, route: VenueQuote):
        try:
            return await self.pool_source.get_route_pools(route)
        except FlashRouteError:
            raise
        except Exception as e:
            raise InsufficientLiquidityError(
                f"Pool data unavailable: {e}",
                details={"venue_id": route.venue_id},
            ) from e

    @staticmethod
    def _payload(
        intent: ArbitrageIntent,
        route: VenueQuote,
        calc: ProfitCalculation,
    ) -> Dict[str, Any]:
        return {
            "intent_id": intent.id,
            "venue_id": route.venue_id,
            "fee_tier": route.fee_tier,
            "route_data": dict(route.route_data),
            "amount_in": calc.suggested_amount,
            "expected_amount_out": calc.final_amount_out,
        }

    async def _settle(
        self,
        intent: ArbitrageIntent,
        machine: IntentStateMachine,
        run: _IntentRun,
    ) -> ExecutionResult:
        route, loan = run.route, run.loan
        try:
            settlement = await self.ledger.settle(
                route, loan.used_provider_id, run.calc.suggested_amount
            )
        except Exception as e:
            logger.error(
                f"Settlement raised: {e}",
                extra={"context": {"intent_id": intent.id, "venue_id": route.venue_id}},
            )
            await self.stats.record_attempt(route.venue_id, False, 0, ProviderKind.VENUE)
            raise ExecutionFailedError(f"Settlement error: {e}", reason=str(e)) from e

        run.settlement = settlement
        await self.stats.record_attempt(
            route.venue_id, settlement.success, settlement.gas_used, ProviderKind.VENUE
        )

        run.realized_profit = settlement.realized_profit
        await self.governor.commit(intent.caller_id, -settlement.realized_profit, run.reservation)
        run.risk_resolved = True

        if not settlement.success:
            logger.error(
                f"Settlement failed: {settlement.error_reason}",
                extra={
                    "context": {
                        "intent_id": intent.id,
                        "provider_id": loan.used_provider_id,
                        "realized_profit": settlement.realized_profit,
                    }
                },
            )
            return self._error_result(
                intent,
                machine,
                run,
                ErrorCode.EXECUTION_FAILED,
                settlement.error_reason or "Settlement failed",
            )

        status = machine.close(IntentStage.COMPLETED)
        result = ExecutionResult(
            success=True,
            used_provider_id=loan.used_provider_id,
            actual_fee=loan.actual_fee,
            gas_used=loan.gas_used + settlement.gas_used,
            intent_id=intent.id,
            status=status,
            stage=machine.last_working_stage.value,
            realized_profit=settlement.realized_profit,
            attempts=loan.attempts,
        )
        logger.info(
            "Intent completed",
            extra={
                "context": {
                    "intent_id": intent.id,
                    "venue_id": route.venue_id,
                    "provider_id": loan.used_provider_id,
                    "realized_profit": settlement.realized_profit,
                    "failed_attempts": len(result.failed_attempts),
                }
            },
        )
        return result

    # =========================================================================
    # OUTCOMES
    # =========================================================================

    async def _resolve_risk(self, intent: ArbitrageIntent, run: _IntentRun) -> None:
        """Release or commit an outstanding reservation."""
        if run.risk_resolved or run.reservation is None:
            return
        if run.loan_drawn:
            # Loan fee is spent even though the trade did not settle
            run.realized_profit = -run.loan.actual_fee
            await self.governor.commit(intent.caller_id, run.loan.actual_fee, run.reservation)
        else:
            await self.governor.release(run.reservation)
        run.risk_resolved = True

    def _error_result(
        self,
        intent: ArbitrageIntent,
        machine: IntentStateMachine,
        run: _IntentRun,
        code: ErrorCode,
        detail: str,
    ) -> ExecutionResult:
        terminal = IntentStage.REJECTED if code in REJECTION_CODES else IntentStage.FAILED
        status = machine.close(terminal) if not machine.is_terminal else ExecutionStatus.FAILED
        stage = machine.last_working_stage.value

        log = logger.info if status == ExecutionStatus.REJECTED else logger.warning
        log(
            f"Intent {status.value.lower()}: {code.value}",
            extra={
                "context": {
                    "intent_id": intent.id,
                    "caller_id": intent.caller_id,
                    "stage": stage,
                    "detail": detail,
                }
            },
        )

        loan = run.loan if run.loan_drawn else None
        settlement_gas = run.settlement.gas_used if run.settlement else 0
        return ExecutionResult(
            success=False,
            used_provider_id=loan.used_provider_id if loan else None,
            actual_fee=loan.actual_fee if loan else 0,
            gas_used=(run.loan.gas_used if run.loan else 0) + settlement_gas,
            error_reason=code.value,
            intent_id=intent.id,
            status=status,
            stage=stage,
            error_detail=detail,
            realized_profit=run.realized_profit,
            attempts=run.attempts,
        )
