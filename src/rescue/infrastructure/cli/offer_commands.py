"""CLI commands for outlet offers."""

from __future__ import annotations

import click

from rescue.application.caller import Caller
from rescue.domain.exceptions import DomainException
from rescue.infrastructure.bootstrap import build_container


@click.command("add")
@click.option("--outlet", required=True, help="Outlet ID publishing the offer.")
@click.option("--name", required=True, help="Offer name.")
@click.option("--price", required=True, help="Price (e.g. 10.00).")
@click.option("--quantity", required=True, type=int, help="Units available.")
@click.option("--id", "offer_id", default=None, help="Offer ID (generated if omitted).")
def offer_add(outlet: str, name: str, price: str, quantity: int, offer_id: str | None) -> None:
    """Publish a new offer."""
    handler = build_container().add_offer()

    try:
        dto = handler.handle(Caller.outlet(outlet), name=name, price=price, quantity=quantity, offer_id=offer_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Offer {dto.id} '{dto.name}' added at {dto.price} ({dto.quantity_available} available)")


@click.command("restock")
@click.option("--outlet", required=True, help="Outlet ID owning the offer.")
@click.option("--id", "offer_id", required=True, help="Offer ID.")
@click.option("--quantity", required=True, type=int, help="Units to add.")
def offer_restock(outlet: str, offer_id: str, quantity: int) -> None:
    """Add units to an offer."""
    handler = build_container().restock_offer()

    try:
        dto = handler.handle(Caller.outlet(outlet), offer_id, quantity)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Offer {dto.id} now has {dto.quantity_available} available")


@click.command("show")
@click.option("--outlet", required=True, help="Outlet ID.")
def offer_show(outlet: str) -> None:
    """List an outlet's offers."""
    offers = build_container().show_offers().handle(outlet)

    if not offers:
        click.echo("No offers found.")
        return

    click.echo(f"{'ID':<34} {'Name':<20} {'Price':>10} {'Avail':>6} {'Active':>7}")
    click.echo("-" * 81)
    for o in offers:
        click.echo(f"{o.id:<34} {o.name:<20} {o.price:>10} {o.quantity_available:>6} {str(o.is_active):>7}")
