import click

from rescue.infrastructure.cli.cart_commands import (
    cart_add,
    cart_clear,
    cart_remove,
    cart_show,
    cart_update,
)
from rescue.infrastructure.cli.offer_commands import offer_add, offer_restock, offer_show
from rescue.infrastructure.cli.order_commands import (
    order_accept,
    order_cancel,
    order_complete,
    order_create,
    order_decline,
    order_list,
    order_pickup,
    order_prepare,
    order_rate,
    order_ready,
    order_show,
)
from rescue.infrastructure.cli.payment_commands import payment_webhook
from rescue.infrastructure.cli.sweep_commands import sweep_run
from rescue.infrastructure.logging import add_context, configure_logging


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Rescue — surplus food orders with deferred payment capture"""
    configure_logging()
    if ctx.invoked_subcommand:
        add_context(command=ctx.invoked_subcommand)


@cli.group()
def offer() -> None:
    """Manage outlet offers."""


@cli.group()
def cart() -> None:
    """Manage a customer's cart."""


@cli.group()
def order() -> None:
    """Manage orders."""


@cli.group()
def payment() -> None:
    """Payment gateway callbacks."""


@cli.group()
def sweep() -> None:
    """Background expiry sweeps."""


# Register subcommands
offer.add_command(offer_add)
offer.add_command(offer_restock)
offer.add_command(offer_show)
cart.add_command(cart_add)
cart.add_command(cart_update)
cart.add_command(cart_remove)
cart.add_command(cart_show)
cart.add_command(cart_clear)
order.add_command(order_create)
order.add_command(order_show)
order.add_command(order_list)
order.add_command(order_accept)
order.add_command(order_decline)
order.add_command(order_cancel)
order.add_command(order_prepare)
order.add_command(order_ready)
order.add_command(order_pickup)
order.add_command(order_complete)
order.add_command(order_rate)
payment.add_command(payment_webhook)
sweep.add_command(sweep_run)
