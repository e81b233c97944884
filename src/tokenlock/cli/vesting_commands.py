#!/usr/bin/env python3
"""
tokenlock CLI - Operator Interface for Lock Plans

Commands for reviewing vesting setups before and after they go live:
- Plan file validation and unlock timelines
- Unlock simulation against a real engine
- Inspection of persisted state snapshots
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

import click
from rich import box
from rich.console import Console
from rich.table import Table

from tokenlock.contracts.erc20 import ERC20Token
from tokenlock.core.access import VestingCapabilities
from tokenlock.core.config import (
    STATE_PATH,
    ConfigurationError,
    PlanDefinition,
    VestingConfig,
    load_plan_file,
    parse_duration,
)
from tokenlock.core.logging_config import setup_logging
from tokenlock.core.state_store import VestingStateStore
from tokenlock.core.vesting_exceptions import VestingError
from tokenlock.treasury.cashbox import Cashbox
from tokenlock.vesting.engine import VestingEngine
from tokenlock.vesting.plans import PlanTable
from tokenlock.vesting.schedule import unlock_timeline

logger = logging.getLogger(__name__)
console = Console()

SIM_OWNER = "simulation_owner"
SIM_FREEZER = "simulation_freezer"
SIM_BENEFICIARY = "simulation_beneficiary"


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _format_ts(timestamp: int | None) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp, timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _emit_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


def _build_table(definitions: List[PlanDefinition], max_lock_plans: int) -> PlanTable:
    table = PlanTable(max_lock_plans=max_lock_plans)
    for definition in definitions:
        table.define_plan(definition.plan_id, definition.offsets, definition.percents)
    return table


def _parse_instant(raw: str, release_time: int) -> int:
    """Absolute timestamp, or ``+<duration>`` relative to the release time."""
    text = raw.strip()
    if text.startswith("+"):
        return release_time + parse_duration(text[1:])
    try:
        return int(text)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid instant {raw!r}") from exc


@click.group()
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Logging level",
)
@click.option(
    "--max-lock-plans",
    type=int,
    default=None,
    help="Number of plan slots (defaults to TOKENLOCK_MAX_LOCK_PLANS)",
)
@click.pass_context
def cli(ctx: click.Context, json_output: bool, log_level: str | None, max_lock_plans: int | None):
    """tokenlock - lock plan review and unlock simulation."""
    ctx.ensure_object(dict)
    setup_logging(name="tokenlock", level=log_level or "ERROR")
    try:
        config = VestingConfig.from_env()
        if max_lock_plans is not None:
            config.max_lock_plans = max_lock_plans
        config.validate()
    except ConfigurationError as exc:
        _cli_fail(exc)
    ctx.obj["json_output"] = json_output
    ctx.obj["config"] = config


# ==================== Plans ====================


@cli.group()
def plans():
    """Lock plan file commands."""
    pass


@plans.command("validate")
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def plans_validate(ctx: click.Context, plan_file: str):
    """Check every plan in PLAN_FILE against the plan rules."""
    config: VestingConfig = ctx.obj["config"]
    try:
        definitions = load_plan_file(plan_file)
        table = _build_table(definitions, config.max_lock_plans)
    except (ConfigurationError, VestingError) as exc:
        _cli_fail(exc)
        return

    if ctx.obj["json_output"]:
        _emit_json(
            {
                "valid": True,
                "plans": [
                    {"id": plan.plan_id, "offsets": list(plan.offsets), "percents": list(plan.percents)}
                    for plan in table.defined_plans()
                ],
            }
        )
        return

    names = {d.plan_id: d.name for d in definitions}
    table_view = Table(title="Lock Plans", box=box.ROUNDED)
    table_view.add_column("Plan", style="cyan")
    table_view.add_column("Name")
    table_view.add_column("Steps", justify="right")
    table_view.add_column("Duration", justify="right")
    table_view.add_column("Percents")
    for plan in table.defined_plans():
        table_view.add_row(
            str(plan.plan_id),
            names.get(plan.plan_id, ""),
            str(len(plan)),
            f"{plan.duration / 86400:g}d",
            " / ".join(str(p) for p in plan.percents),
        )
    console.print(table_view)
    console.print(f"[green]OK[/] {len(table)} plan(s) valid")


@plans.command("timeline")
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--release-time", type=int, required=True, help="Release time (unix seconds)")
@click.option("--plan", "plan_id", type=int, default=None, help="Only show this plan")
@click.pass_context
def plans_timeline(ctx: click.Context, plan_file: str, release_time: int, plan_id: int | None):
    """Show absolute unlock times for the plans in PLAN_FILE."""
    config: VestingConfig = ctx.obj["config"]
    try:
        table = _build_table(load_plan_file(plan_file), config.max_lock_plans)
    except (ConfigurationError, VestingError) as exc:
        _cli_fail(exc)
        return

    rows: Dict[int, List[Tuple[int, int, int]]] = {}
    for plan in table.defined_plans():
        if plan_id is not None and plan.plan_id != plan_id:
            continue
        rows[plan.plan_id] = [tuple(entry) for entry in unlock_timeline(plan, release_time)]

    if ctx.obj["json_output"]:
        _emit_json(
            {
                str(pid): [
                    {"unlock_time": t, "percent": p, "cumulative_percent": c}
                    for t, p, c in entries
                ]
                for pid, entries in rows.items()
            }
        )
        return

    for pid, entries in rows.items():
        view = Table(title=f"Plan {pid}", box=box.SIMPLE)
        view.add_column("Unlock at")
        view.add_column("Step %", justify="right")
        view.add_column("Cumulative %", justify="right")
        for unlock_time, percent, cumulative in entries:
            view.add_row(_format_ts(unlock_time), str(percent), str(cumulative))
        console.print(view)


# ==================== Simulation ====================


@cli.command("simulate")
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--release-time", type=int, required=True, help="Release time (unix seconds)")
@click.option("--plan", "plan_id", type=int, required=True, help="Plan to freeze into")
@click.option("--amount", type=click.IntRange(min=0), required=True, help="Amount to freeze")
@click.option(
    "--at",
    "instants",
    multiple=True,
    required=True,
    help="Claim instant: unix seconds or +<duration> after release (e.g. +7d)",
)
@click.pass_context
def simulate(
    ctx: click.Context,
    plan_file: str,
    release_time: int,
    plan_id: int,
    amount: int,
    instants: Tuple[str, ...],
):
    """Freeze AMOUNT under a plan and claim at each instant, in time order."""
    config: VestingConfig = ctx.obj["config"]
    try:
        definitions = load_plan_file(plan_file)
        moments = sorted(_parse_instant(raw, release_time) for raw in instants)
        results = _run_simulation(config, definitions, release_time, plan_id, amount, moments)
    except (ConfigurationError, VestingError) as exc:
        _cli_fail(exc)
        return

    if ctx.obj["json_output"]:
        _emit_json({"plan": plan_id, "amount": amount, "claims": results})
        return

    view = Table(title=f"Plan {plan_id}: {amount} frozen", box=box.ROUNDED)
    view.add_column("At")
    view.add_column("Vested %", justify="right")
    view.add_column("Claimed", justify="right")
    view.add_column("Withdrawn", justify="right")
    view.add_column("Still frozen", justify="right")
    for row in results:
        view.add_row(
            _format_ts(row["at"]),
            str(row["percent_vested"]),
            str(row["claimed"]),
            str(row["withdrawn"]),
            str(row["frozen"]),
        )
    console.print(view)


def _run_simulation(
    config: VestingConfig,
    definitions: List[PlanDefinition],
    release_time: int,
    plan_id: int,
    amount: int,
    moments: List[int],
) -> List[Dict[str, int]]:
    clock = {"now": release_time - 1}
    token = ERC20Token(name="Simulated", symbol="SIM", owner=SIM_OWNER)
    cashbox = Cashbox(token=token, owner=SIM_OWNER)
    if amount > 0:
        token.mint(SIM_OWNER, cashbox.address, amount)
    cashbox.set_wallet_limit(SIM_OWNER, config.engine_address, amount)

    engine = VestingEngine(
        token=token,
        treasury=cashbox,
        capabilities=VestingCapabilities(owner=SIM_OWNER, freezer=SIM_FREEZER),
        release_time=release_time,
        config=VestingConfig(
            max_lock_plans=config.max_lock_plans,
            max_plan_steps=config.max_plan_steps,
            engine_address=config.engine_address,
        ),
        time_provider=lambda: clock["now"],
    )
    for definition in definitions:
        engine.define_plan(SIM_OWNER, definition.plan_id, definition.offsets, definition.percents)
    engine.freeze(SIM_FREEZER, SIM_BENEFICIARY, amount, plan_id)

    results = []
    for moment in moments:
        clock["now"] = max(clock["now"], moment)
        claimed = engine.claim(SIM_BENEFICIARY, plan_id)
        balance = engine.balance_of(SIM_BENEFICIARY, plan_id)
        results.append(
            {
                "at": moment,
                "percent_vested": engine.resolve(plan_id).percent_vested,
                "claimed": claimed,
                "withdrawn": balance.withdrawn,
                "frozen": balance.frozen,
            }
        )
    return results


# ==================== State ====================


@cli.group()
def state():
    """Persisted vesting state commands."""
    pass


@state.command("show")
@click.argument("state_file", type=click.Path(dir_okay=False), required=False)
@click.pass_context
def state_show(ctx: click.Context, state_file: str | None):
    """Summarise a vesting state snapshot (defaults to TOKENLOCK_STATE_PATH)."""
    config: VestingConfig = ctx.obj["config"]
    state_file = state_file or config.state_path or STATE_PATH
    try:
        snapshot = VestingStateStore(state_file).load()
    except VestingError as exc:
        _cli_fail(exc)
        return
    if snapshot is None:
        _cli_fail(FileNotFoundError(f"No state snapshot at {state_file}"))
        return

    totals = {int(pid): total for pid, total in snapshot.get("plan_totals", {}).items()}
    withdrawn: Dict[int, int] = {}
    holders: Dict[int, int] = {}
    for row in snapshot.get("ledger", []):
        pid = int(row["plan_id"])
        withdrawn[pid] = withdrawn.get(pid, 0) + int(row["withdrawn"])
        holders[pid] = holders.get(pid, 0) + 1

    summary = {
        "release_time": snapshot.get("release_time"),
        "plans": {
            str(pid): {
                "locked": totals.get(pid, 0),
                "withdrawn": withdrawn.get(pid, 0),
                "beneficiaries": holders.get(pid, 0),
            }
            for pid in sorted(set(totals) | {int(p) for p in snapshot.get("plans", {})})
        },
    }

    if ctx.obj["json_output"]:
        _emit_json(summary)
        return

    console.print(f"Release time: {_format_ts(summary['release_time'])}")
    view = Table(title="Plans", box=box.ROUNDED)
    view.add_column("Plan", style="cyan")
    view.add_column("Locked", justify="right")
    view.add_column("Withdrawn", justify="right")
    view.add_column("Beneficiaries", justify="right")
    for pid, info in summary["plans"].items():
        view.add_row(pid, str(info["locked"]), str(info["withdrawn"]), str(info["beneficiaries"]))
    console.print(view)


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
