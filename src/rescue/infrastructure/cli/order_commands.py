"""CLI commands for the Order aggregate."""

from __future__ import annotations

import click

from rescue.application.caller import Caller
from rescue.application.dto import OrderDTO
from rescue.domain.exceptions import DomainException
from rescue.domain.model.order import OrderStatus
from rescue.infrastructure.bootstrap import build_container


def _caller(customer: str | None, outlet: str | None) -> Caller:
    if customer and outlet:
        raise click.BadParameter("Pass either --customer or --outlet, not both.")
    if customer:
        return Caller.customer(customer)
    if outlet:
        return Caller.outlet(outlet)
    return Caller.system()


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order {dto.order_number}  (status={dto.status})")
    click.echo(f"ID:          {dto.id}")
    click.echo(f"Customer:    {dto.customer_id}")
    click.echo(f"Outlet:      {dto.outlet_id}")
    click.echo(f"Created:     {dto.created_at}")
    click.echo(f"Pickup code: {dto.pickup_code}")
    if dto.shop_acceptance_deadline:
        click.echo(f"Accept by:   {dto.shop_acceptance_deadline}")
    if dto.pickup_deadline:
        click.echo(f"Collect by:  {dto.pickup_deadline}")
    if dto.decline_reason:
        click.echo(f"Declined:    {dto.decline_reason}")
    if dto.cancellation_reason:
        click.echo(f"Reason:      {dto.cancellation_reason}")
    if dto.refund_review_required:
        click.echo("Refund review required")
    if dto.payment is not None:
        click.echo(f"Payment:     {dto.payment.status} {dto.payment.amount}")
    if dto.rating is not None:
        click.echo(f"Rating:      {dto.rating}/5 {dto.review or ''}")
    click.echo()

    click.echo(f"  {'Offer':<20} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*47}")
    for line in dto.lines:
        click.echo(f"  {line.offer_name:<20} {line.quantity:>5} {line.unit_price:>10} {line.line_total:>10}")
    click.echo(f"  {'-'*47}")
    click.echo(f"  {'Subtotal':<27} {dto.subtotal:>20}")
    click.echo(f"  {'Service fee':<27} {dto.service_fee:>20}")
    click.echo(f"  {'Order Total':<27} {dto.total:>20}")

    for adj in dto.adjustments:
        click.echo(f"  note: {adj.offer_name} {adj.requested} -> {adj.granted} ({adj.reason})")


@click.command("create")
@click.option("--customer", required=True, help="Customer ID.")
@click.option("--payment-method", required=True, help="Payment method token.")
def order_create(customer: str, payment_method: str) -> None:
    """Place an order from the customer's cart."""
    handler = build_container().create_order()

    try:
        dto = handler.handle(customer_id=customer, payment_method=payment_method)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("show")
@click.option("--id", "order_id", required=True, help="Order ID or number.")
@click.option("--customer", default=None, help="Act as this customer.")
@click.option("--outlet", default=None, help="Act as this outlet.")
def order_show(order_id: str, customer: str | None, outlet: str | None) -> None:
    """Show details of an existing order."""
    handler = build_container().show_order()

    try:
        dto = handler.handle(_caller(customer, outlet), order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("list")
@click.option("--customer", default=None, help="Orders of this customer.")
@click.option("--outlet", default=None, help="Orders placed with this outlet.")
@click.option(
    "--status",
    default=None,
    type=click.Choice([s.value for s in OrderStatus]),
    help="Only orders in this status.",
)
def order_list(customer: str | None, outlet: str | None, status: str | None) -> None:
    """List orders."""
    handler = build_container().list_orders()
    orders = handler.handle(_caller(customer, outlet), OrderStatus(status) if status else None)

    if not orders:
        click.echo("No orders found.")
        return

    click.echo(f"{'Number':<12} {'Status':<20} {'Customer':<15} {'Outlet':<15} {'Total':>10}")
    click.echo("-" * 76)
    for o in orders:
        click.echo(f"{o.order_number:<12} {o.status:<20} {o.customer_id:<15} {o.outlet_id:<15} {o.total:>10}")


@click.command("accept")
@click.option("--outlet", required=True, help="Outlet ID.")
@click.option("--id", "order_id", required=True, help="Order ID or number.")
def order_accept(outlet: str, order_id: str) -> None:
    """Accept an order (captures the payment)."""
    handler = build_container().accept_order()

    try:
        dto = handler.handle(Caller.outlet(outlet), order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if dto.status == OrderStatus.PAID.value:
        click.echo(f"Order {dto.order_number} accepted, payment captured.")
    else:
        click.echo(f"Order {dto.order_number} {dto.status}: {dto.decline_reason}")


@click.command("decline")
@click.option("--outlet", required=True, help="Outlet ID.")
@click.option("--id", "order_id", required=True, help="Order ID or number.")
@click.option("--reason", required=True, help="Why the order is declined.")
def order_decline(outlet: str, order_id: str, reason: str) -> None:
    """Decline an order (voids the payment hold)."""
    handler = build_container().decline_order()

    try:
        dto = handler.handle(Caller.outlet(outlet), order_id, reason)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} declined.")


@click.command("cancel")
@click.option("--customer", required=True, help="Customer ID.")
@click.option("--id", "order_id", required=True, help="Order ID or number.")
@click.option("--reason", default=None, help="Optional reason.")
def order_cancel(customer: str, order_id: str, reason: str | None) -> None:
    """Cancel an order (voids or refunds the payment)."""
    handler = build_container().cancel_order()

    try:
        dto = handler.handle(Caller.customer(customer), order_id, reason)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} {dto.status.lower()}.")


@click.command("prepare")
@click.option("--outlet", required=True, help="Outlet ID.")
@click.option("--id", "order_id", required=True, help="Order ID or number.")
def order_prepare(outlet: str, order_id: str) -> None:
    """Start preparing a paid order."""
    handler = build_container().fulfill_order()

    try:
        dto = handler.mark_preparing(Caller.outlet(outlet), order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} is being prepared.")


@click.command("ready")
@click.option("--outlet", required=True, help="Outlet ID.")
@click.option("--id", "order_id", required=True, help="Order ID or number.")
def order_ready(outlet: str, order_id: str) -> None:
    """Mark an order ready for pickup."""
    handler = build_container().fulfill_order()

    try:
        dto = handler.mark_ready(Caller.outlet(outlet), order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} is ready for pickup until {dto.pickup_deadline}.")


@click.command("complete")
@click.option("--outlet", required=True, help="Outlet ID.")
@click.option("--id", "order_id", required=True, help="Order ID or number.")
def order_complete(outlet: str, order_id: str) -> None:
    """Complete a picked-up order without waiting for the timer."""
    handler = build_container().fulfill_order()

    try:
        dto = handler.complete(Caller.outlet(outlet), order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} completed.")


@click.command("pickup")
@click.option("--outlet", required=True, help="Outlet ID.")
@click.option("--id", "order_id", required=True, help="Order ID or number.")
@click.option("--code", required=True, help="Pickup code shown by the customer.")
def order_pickup(outlet: str, order_id: str, code: str) -> None:
    """Hand an order over after checking its pickup code."""
    handler = build_container().fulfill_order()

    try:
        dto = handler.verify_pickup(Caller.outlet(outlet), order_id, code)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} picked up.")


@click.command("rate")
@click.option("--customer", required=True, help="Customer ID.")
@click.option("--id", "order_id", required=True, help="Order ID or number.")
@click.option("--rating", required=True, type=click.IntRange(1, 5), help="1 to 5.")
@click.option("--review", default=None, help="Optional review text.")
def order_rate(customer: str, order_id: str, rating: int, review: str | None) -> None:
    """Rate a completed order."""
    handler = build_container().rate_order()

    try:
        dto = handler.handle(Caller.customer(customer), order_id, rating, review)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} rated {dto.rating}/5.")
