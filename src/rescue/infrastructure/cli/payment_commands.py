"""CLI commands for inbound payment gateway callbacks."""

from __future__ import annotations

import json

import click

from rescue.application.dto import WebhookPayload
from rescue.infrastructure.bootstrap import build_container
from rescue.infrastructure.gateway.simulated_gateway import SimulatedGateway


@click.command("webhook")
@click.argument("payload_file", type=click.File("r"), default="-")
@click.option("--sign", is_flag=True, default=False, help="Sign the payload with the configured secret first.")
def payment_webhook(payload_file, sign: bool) -> None:
    """Deliver a gateway callback (JSON, from a file or stdin)."""
    try:
        raw = json.load(payload_file)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON payload: {exc}")

    container = build_container()
    if sign:
        if not isinstance(container.gateway, SimulatedGateway):
            raise click.ClickException("--sign is only available with the simulated gateway")
        raw["signature"] = container.gateway.sign(WebhookPayload.from_dict(raw).signing_string())

    ack = container.process_webhook().receive(raw)
    click.echo(json.dumps({"received": ack.received, "outcome": ack.outcome}))
