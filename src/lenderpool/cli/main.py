"""
LenderPool CLI

Commands:
- accrue: One-off reward calculation for a principal at a fixed rate
- simulate: Replay a scenario file and report principal and rewards
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table

from lenderpool import __version__
from lenderpool.collaborators.assets import from_units, to_units
from lenderpool.constants import DEFAULT_PRINCIPAL_DECIMALS, SECONDS_PER_DAY
from lenderpool.exceptions import LenderPoolError
from lenderpool.reward.rate_ledger import RateLedger
from lenderpool.simulation import ScenarioResult, load_scenario, run_scenario

console = Console()


def _output_json(data) -> None:
    click.echo(json.dumps(data, indent=2))


@click.group()
@click.version_option(__version__, prog_name="lenderpool")
@click.option("--verbose", "-v", is_flag=True, help="Log ledger activity to stderr.")
def app(verbose: bool) -> None:
    """Lender pool reward accrual tools."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")


@app.command()
@click.option("--principal", required=True, help="Principal in whole tokens (e.g. 1000.5).")
@click.option("--rate-bps", type=click.IntRange(min=0), required=True, help="Annual rate in basis points.")
@click.option("--days", type=click.IntRange(min=0), required=True, help="Length of the accrual window.")
@click.option(
    "--decimals", type=click.IntRange(0, 36), default=DEFAULT_PRINCIPAL_DECIMALS,
    show_default=True, help="Decimals of the principal asset.",
)
@click.option(
    "--reward-decimals", type=click.IntRange(0, 36), default=None,
    help="Decimals of the reward asset (defaults to --decimals).",
)
@click.option("--json", "json_flag", is_flag=True, help="Output as JSON.")
def accrue(
    principal: str,
    rate_bps: int,
    days: int,
    decimals: int,
    reward_decimals: Optional[int],
    json_flag: bool,
) -> None:
    """Compute the reward a principal earns over DAYS at a fixed rate."""
    if reward_decimals is None:
        reward_decimals = decimals
    try:
        amount = to_units(principal, decimals)
        ledger = RateLedger(
            "REWARD", rate_bps, principal_decimals=decimals, reward_decimals=reward_decimals
        )
        reward = ledger.accrued_factor(amount, 0, days * SECONDS_PER_DAY)
    except LenderPoolError as exc:
        raise click.ClickException(str(exc))

    if json_flag:
        _output_json({
            "principal": amount,
            "rate_bps": rate_bps,
            "days": days,
            "reward": reward,
            "reward_decimals": reward_decimals,
        })
        return

    console.print(
        f"[bold]{principal}[/bold] at [cyan]{rate_bps}[/cyan] bps for {days} days earns "
        f"[green]{from_units(reward, reward_decimals)}[/green] ({reward} units)"
    )


@app.command()
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "json_flag", is_flag=True, help="Output as JSON.")
def simulate(scenario: Path, json_flag: bool) -> None:
    """Replay SCENARIO (a YAML file) and report every user's position."""
    try:
        result = run_scenario(load_scenario(scenario))
    except LenderPoolError as exc:
        raise click.ClickException(str(exc))

    if json_flag:
        _output_json(result.model_dump(mode="json"))
        return
    _render(result)


def _render(result: ScenarioResult) -> None:
    days = result.report_at / SECONDS_PER_DAY
    console.print(f"\n[bold blue]Scenario {result.name}[/bold blue] at day {days:g}")
    console.print(
        f"Authorities: {' -> '.join(result.authorities)} "
        f"(active: [cyan]{result.active_authority}[/cyan])\n"
    )

    table = Table(box=box.ROUNDED)
    table.add_column("User", style="cyan", no_wrap=True)
    table.add_column("Principal", justify="right")
    table.add_column("Authority")
    table.add_column("Pending", justify="right")
    table.add_column("Claimed", justify="right", style="dim")

    for user, report in sorted(result.users.items()):
        principal = str(report.principal)
        claimed = _format_amounts(report.claimed, result.decimals)
        if not report.pending:
            table.add_row(user, principal, "—", "—", claimed)
            continue
        for i, (authority, pending) in enumerate(report.pending.items()):
            table.add_row(
                user if i == 0 else "",
                principal if i == 0 else "",
                authority,
                _format_amounts(pending, result.decimals),
                claimed if i == 0 else "",
            )

    console.print(table)
    console.print(f"\n  Total users: {len(result.users)}\n")


def _format_amounts(amounts: dict[str, int], decimals: dict[str, int]) -> str:
    if not amounts:
        return "—"
    return ", ".join(
        f"{from_units(amount, decimals.get(asset, 0))} {asset}"
        for asset, amount in sorted(amounts.items())
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
