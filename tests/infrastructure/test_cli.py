"""Smoke tests for the click command line, backed by a temporary JSON file."""

import json
import logging

import pytest
import structlog
from click.testing import CliRunner

from rescue.infrastructure.cli.main import cli


@pytest.fixture
def run(tmp_path):
    runner = CliRunner()
    env = {"RESCUE_DATA_FILE": str(tmp_path / "rescue.json"), "ENV": "test"}

    def invoke(*args: str, input: str | None = None):
        return runner.invoke(cli, list(args), env=env, input=input)

    yield invoke
    logging.getLogger().handlers = []
    structlog.reset_defaults()


def _field(output: str, label: str) -> str:
    for line in output.splitlines():
        if line.startswith(label):
            return line.split(":", 1)[1].strip()
    raise AssertionError(f"{label} not in output")


class TestOrderCommands:

    def test_checkout_and_accept(self, run):
        assert run("offer", "add", "--outlet", "bakery", "--name", "Bread Box", "--price", "6.00",
                   "--quantity", "2", "--id", "bread").exit_code == 0
        assert run("cart", "add", "--customer", "ana", "--offer", "bread").exit_code == 0

        created = run("order", "create", "--customer", "ana", "--payment-method", "pm_card_visa")
        assert created.exit_code == 0, created.output
        assert "PENDING_ACCEPTANCE" in created.output
        assert "$6.60" in created.output
        order_id = _field(created.output, "ID:")

        accepted = run("order", "accept", "--outlet", "bakery", "--id", order_id)
        assert accepted.exit_code == 0
        assert "payment captured" in accepted.output

        offers = run("offer", "show", "--outlet", "bakery")
        assert "bread" in offers.output

    def test_domain_errors_become_cli_errors(self, run):
        result = run("cart", "add", "--customer", "ana", "--offer", "nope")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_wrong_outlet_cannot_accept(self, run):
        run("offer", "add", "--outlet", "bakery", "--name", "Bread Box", "--price", "6.00",
            "--quantity", "2", "--id", "bread")
        run("cart", "add", "--customer", "ana", "--offer", "bread")
        order_id = _field(run("order", "create", "--customer", "ana", "--payment-method", "pm").output, "ID:")

        result = run("order", "accept", "--outlet", "grocer", "--id", order_id)

        assert result.exit_code == 1
        assert "does not belong" in result.output


class TestOtherCommands:

    def test_unknown_webhook_is_acknowledged(self, run):
        payload = json.dumps({"transactionId": "cap_1", "status": "SUCCESS"})

        result = run("payment", "webhook", "--sign", input=payload)

        assert result.exit_code == 0
        assert json.loads(result.output.strip().splitlines()[-1]) == {
            "received": True,
            "outcome": "unknown_payment",
        }

    def test_sweep_once(self, run):
        result = run("sweep", "run", "--once")
        assert result.exit_code == 0
        assert "Completed:" in result.output
