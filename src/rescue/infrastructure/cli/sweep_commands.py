"""CLI commands for the expiry sweeper."""

from __future__ import annotations

import click

from rescue.infrastructure.bootstrap import build_container


@click.command("run")
@click.option("--once", is_flag=True, default=False, help="Run a single sweep and exit.")
def sweep_run(once: bool) -> None:
    """Expire overdue orders and carts, complete picked-up orders."""
    container = build_container()

    if once:
        report = container.sweeper().run_once()
        click.echo(f"Expired awaiting acceptance: {len(report.acceptance_expired)}")
        click.echo(f"Expired awaiting pickup:     {len(report.pickup_expired)}")
        click.echo(f"Completed:                   {len(report.completed)}")
        click.echo(f"Carts expired:               {len(report.carts_expired)}")
        if report.failed:
            click.echo(f"Failed (retried next run):   {len(report.failed)}")
        return

    periodic = container.periodic_sweeper()
    periodic.start()
    click.echo(f"Sweeping every {container.settings.sweep_interval_seconds:g}s, press Ctrl+C to stop.")
    try:
        while not periodic.wait(1.0):
            pass
    except KeyboardInterrupt:
        periodic.stop(timeout=5.0)
