"""CLI commands for customer carts."""

from __future__ import annotations

import click

from rescue.application.dto import CartDTO
from rescue.domain.exceptions import DomainException
from rescue.infrastructure.bootstrap import build_container


def _display_cart(dto: CartDTO) -> None:
    click.echo(f"Cart {dto.id}  (status={dto.status}, outlet={dto.outlet_id or '-'})")
    click.echo()
    click.echo(f"  {'Offer':<20} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*47}")
    for line in dto.lines:
        click.echo(f"  {line.offer_name:<20} {line.quantity:>5} {line.unit_price:>10} {line.line_total:>10}")
    click.echo(f"  {'-'*47}")
    click.echo(f"  {'Subtotal':<27} {dto.subtotal:>20}")


@click.command("add")
@click.option("--customer", required=True, help="Customer ID.")
@click.option("--offer", "offer_id", required=True, help="Offer ID.")
@click.option("--quantity", default=1, show_default=True, type=int, help="Units to add.")
def cart_add(customer: str, offer_id: str, quantity: int) -> None:
    """Add an offer to the cart."""
    try:
        dto = build_container().carts().add_line(customer, offer_id, quantity)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_cart(dto)


@click.command("update")
@click.option("--customer", required=True, help="Customer ID.")
@click.option("--offer", "offer_id", required=True, help="Offer ID.")
@click.option("--quantity", required=True, type=int, help="New quantity (0 removes the line).")
def cart_update(customer: str, offer_id: str, quantity: int) -> None:
    """Change a line's quantity."""
    try:
        dto = build_container().carts().update_quantity(customer, offer_id, quantity)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_cart(dto)


@click.command("remove")
@click.option("--customer", required=True, help="Customer ID.")
@click.option("--offer", "offer_id", required=True, help="Offer ID.")
def cart_remove(customer: str, offer_id: str) -> None:
    """Remove a line from the cart."""
    try:
        dto = build_container().carts().remove_line(customer, offer_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_cart(dto)


@click.command("show")
@click.option("--customer", required=True, help="Customer ID.")
def cart_show(customer: str) -> None:
    """Show the customer's active cart."""
    dto = build_container().carts().show(customer)
    if dto is None:
        click.echo("No active cart.")
        return
    _display_cart(dto)


@click.command("clear")
@click.option("--customer", required=True, help="Customer ID.")
def cart_clear(customer: str) -> None:
    """Abandon the customer's active cart."""
    try:
        build_container().carts().clear(customer)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo("Cart cleared.")
