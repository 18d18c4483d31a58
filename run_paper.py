#!/usr/bin/env python3
"""
run_paper.py - CLI entrypoint for paper-mode arbitrage runs.

Loads a YAML scenario (pools, venues, lenders, intents), wires the engine
with in-memory adapters and a paper ledger, submits every intent and
prints the outcome summary.

Usage:
    python run_paper.py --scenario scenarios/weth_two_hop.yaml
    python run_paper.py -s scenarios/weth_two_hop.yaml -o data/paper --no-json-logs
"""

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import yaml

from adapters.amm_venue import PoolRegistry, PoolVenueSource
from adapters.static import PaperLedger, StaticGasPriceSource, StaticLendingSource
from config import load_engine_config
from config.settings import EngineConfig
from core.constants import ProviderKind
from core.exceptions import ConfigError, FlashRouteError
from core.logging import get_logger, set_global_context, setup_logging
from core.math import to_decimal_units
from core.models import ArbitrageIntent, ExecutionResult, PoolSnapshot, ProviderConfig
from core.store import ProviderStatsStore
from core.time import SystemClock
from execution.coordinator import ExecutionCoordinator
from execution.journal import ExecutionJournal
from lending.aggregator import LoanAggregator
from risk.governor import RiskGovernor
from risk.kill_switch import KillSwitch
from routing.optimizer import RouteOptimizer
from simulation.profit import ProfitSimulator

logger = get_logger("flashroute.paper")

DEFAULT_TTL_SECONDS = 60


@dataclass
class PaperEngine:
    """Wired engine plus the pieces the CLI reports on."""
    coordinator: ExecutionCoordinator
    journal: ExecutionJournal
    stats: ProviderStatsStore
    kill_switch: KillSwitch


def load_scenario(path: Path) -> Dict[str, Any]:
    """Load and sanity-check a scenario file."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Scenario root must be a mapping: {path}")
    for section in ("pools", "venues", "lenders", "intents"):
        if not data.get(section):
            raise ConfigError(f"Scenario section '{section}' is missing or empty", details={"path": str(path)})
    return data


def build_engine(scenario: Dict[str, Any], config: EngineConfig) -> PaperEngine:
    """
    Wire an ExecutionCoordinator from a scenario.

    Args:
        scenario: Parsed scenario mapping
        config: Engine config

    Returns:
        PaperEngine
    """
    clock = SystemClock()
    stats = ProviderStatsStore(clock=clock)
    kill_switch = KillSwitch(
        active=bool(scenario.get("paused", False)),
        emergency_stop_loss=config.risk.emergency_stop_loss,
        clock=clock,
    )

    registry = PoolRegistry([
        PoolSnapshot(
            pool_id=p["id"],
            reserve_in=int(p["reserve_in"]),
            reserve_out=int(p["reserve_out"]),
            fee_rate_bps=int(p.get("fee_bps", 30)),
            liquidity=int(p["liquidity"]),
            active=bool(p.get("active", True)),
        )
        for p in scenario["pools"]
    ])

    venues = []
    for v in scenario["venues"]:
        tiers = tuple(v["fee_tiers"]) if v.get("fee_tiers") else None
        venue = PoolVenueSource(v["id"], registry, fee_tiers=tiers, gas_model=config.gas)
        for r in v.get("routes", []):
            venue.add_route(r["token_in"], r["token_out"], r["pools"], fee_tier=r.get("fee_tier"))
        venues.append(venue)
        stats.register(ProviderConfig(
            provider_id=v["id"],
            kind=ProviderKind.VENUE,
            active=bool(v.get("active", True)),
        ))

    lenders = []
    for entry in scenario["lenders"]:
        lenders.append(StaticLendingSource(
            provider_id=entry["id"],
            fee_bps=int(entry.get("fee_bps", 0)),
            max_amounts={k: int(val) for k, val in entry.get("max_amounts", {}).items()},
            outcomes=entry.get("outcomes"),
        ))
        stats.register(ProviderConfig(
            provider_id=entry["id"],
            kind=ProviderKind.LENDER,
            active=bool(entry.get("active", True)),
            priority=int(entry.get("priority", 0)),
        ))

    gas_price = int(scenario.get("gas_price", config.gas.fallback_gas_price))
    journal = ExecutionJournal()
    ledger = PaperLedger(
        registry,
        gas_model=config.gas,
        gas_price=gas_price,
        lender_fees_bps={entry["id"]: int(entry.get("fee_bps", 0)) for entry in scenario["lenders"]},
        fail_venues=scenario.get("fail_venues", []),
    )

    coordinator = ExecutionCoordinator(
        optimizer=RouteOptimizer(venues, stats=stats, config=config),
        simulator=ProfitSimulator(config, kill_switch=kill_switch),
        governor=RiskGovernor(config.risk, clock=clock, kill_switch=kill_switch),
        aggregator=LoanAggregator(lenders, stats=stats, config=config),
        ledger=ledger,
        pool_source=registry,
        gas_source=StaticGasPriceSource(gas_price),
        journal=journal,
        stats=stats,
        config=config,
        clock=clock,
    )
    return PaperEngine(coordinator=coordinator, journal=journal, stats=stats, kill_switch=kill_switch)


def build_intents(scenario: Dict[str, Any], now: float) -> List[ArbitrageIntent]:
    intents = []
    for i, entry in enumerate(scenario["intents"]):
        intents.append(ArbitrageIntent.create(
            token_in=entry["token_in"],
            token_out=entry.get("token_out", entry["token_in"]),
            amount=int(entry["amount"]),
            min_profit=int(entry.get("min_profit", 0)),
            max_slippage_bps=int(entry.get("max_slippage_bps", 100)),
            deadline=now + float(entry.get("ttl_seconds", DEFAULT_TTL_SECONDS)),
            caller_id=str(entry.get("caller_id", "paper")),
            # Distinct issuance per entry
            issued_at=now + i * 1e-6,
        ))
    return intents


async def run_scenario(engine: PaperEngine, intents: List[ArbitrageIntent]) -> List[ExecutionResult]:
    """Submit intents concurrently and collect results in order."""
    return list(await asyncio.gather(*(engine.coordinator.submit(i) for i in intents)))


@click.command()
@click.option(
    "--scenario",
    "-s",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Scenario YAML (pools, venues, lenders, intents)",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Engine config YAML (default: config/engine.yaml)",
)
@click.option(
    "--log-level",
    "-l",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON log format",
)
@click.option(
    "--output-dir",
    "-o",
    default=None,
    help="Directory for the execution journal JSON",
)
@click.option(
    "--decimals",
    default=18,
    help="Token decimals for human-readable amounts",
)
def main(
    scenario: Path,
    config_path: Optional[Path],
    log_level: str,
    json_logs: bool,
    output_dir: Optional[str],
    decimals: int,
) -> None:
    """
    flashroute paper mode.

    Runs scenario intents through routing, simulation, risk, lending and a
    paper ledger. Nothing touches a chain.
    """
    setup_logging(level=log_level, json_output=json_logs)
    set_global_context(
        service="flashroute-paper",
        version="0.1.0",
    )

    try:
        config = load_engine_config(config_path)
        data = load_scenario(scenario)
        engine = build_engine(data, config)
        intents = build_intents(data, SystemClock().now())
    except (ConfigError, FlashRouteError, KeyError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Invalid scenario or config: {e}", extra={"context": {"scenario": str(scenario)}})
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    logger.info(
        "Starting paper run",
        extra={"context": {"scenario": str(scenario), "intents": len(intents)}},
    )

    results = asyncio.run(run_scenario(engine, intents))

    if output_dir:
        saved = engine.journal.save(Path(output_dir) / "execution_journal.json")
        logger.info("Journal saved", extra={"context": {"path": str(saved)}})

    summary = engine.journal.get_summary()
    logger.info("Paper run finished", extra={"context": summary})

    # Print human-readable summary
    click.echo("\n" + "=" * 60)
    click.echo("PAPER RUN SUMMARY")
    click.echo("=" * 60)
    for intent, result in zip(intents, results):
        status = result.status.value if result.status else "UNKNOWN"
        line = f"{intent.id[:12]}  {intent.caller_id:<10} {status:<10}"
        if result.success:
            line += (
                f" provider={result.used_provider_id}"
                f" profit={to_decimal_units(result.realized_profit, decimals)}"
            )
        else:
            line += f" reason={result.error_reason}"
        if result.failed_attempts:
            line += f" failed_attempts={len(result.failed_attempts)}"
        click.echo(line)
    click.echo("-" * 60)
    click.echo(f"Intents submitted: {len(intents)}")
    click.echo(f"Completed: {summary['completed']}")
    click.echo(f"Rejected: {summary['rejected']}")
    click.echo(f"Failed: {summary['failed']}")
    click.echo(f"Total profit: {to_decimal_units(int(summary['total_profit']), decimals)}")
    click.echo(f"Kill switch active: {engine.kill_switch.is_active}")
    click.echo("=" * 60)


if __name__ == "__main__":
    main()
