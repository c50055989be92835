"""Unit tests for domain value objects."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from rescue.domain.exceptions import ValidationError
from rescue.domain.model.value_objects import AuditInfo, Money, Quantity


# ── Money ────────────────────────────────────────────────────────────────────


class TestMoney:

    def test_creation(self):
        m = Money(Decimal("10.50"))
        assert m.amount == Decimal("10.50")
        assert m.currency == "USD"

    def test_of_factory_from_string(self):
        assert Money.of("25.99").amount == Decimal("25.99")

    def test_of_factory_rejects_garbage(self):
        with pytest.raises(ValidationError, match="Invalid money amount"):
            Money.of("ten")

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            Money(Decimal("-1"))

    def test_addition(self):
        assert Money.of("10") + Money.of("5.50") == Money.of("15.50")

    def test_multiplication_by_int(self):
        assert Money.of("7.50") * 3 == Money.of("22.50")

    def test_currency_mismatch_rejected(self):
        with pytest.raises(ValidationError, match="Cannot combine"):
            Money(Decimal("10"), "USD") + Money(Decimal("5"), "EUR")

    def test_percentage_rounds_half_up_to_cents(self):
        assert Money.of("10.05").percentage(Decimal("0.10")) == Money.of("1.01")
        assert Money.of("10.00").percentage(Decimal("0.10")) == Money.of("1.00")
        assert Money.of("0.04").percentage(Decimal("0.10")) == Money.of("0.00")

    def test_str_formatting(self):
        assert str(Money.of("15")) == "$15.00"
        assert str(Money.of("9.5", "EUR")) == "9.50 EUR"

    def test_comparison_operators(self):
        assert Money.of("5") < Money.of("10")
        assert Money.of("10") <= Money.of("10")


# ── Quantity ─────────────────────────────────────────────────────────────────


class TestQuantity:

    def test_valid_quantity(self):
        assert Quantity(5).value == 5

    def test_zero_rejected(self):
        with pytest.raises(ValidationError, match="must be positive"):
            Quantity(0)

    def test_bool_rejected(self):
        with pytest.raises(ValidationError, match="must be an integer"):
            Quantity(True)


# ── AuditInfo ────────────────────────────────────────────────────────────────


class TestAuditInfo:

    def test_touched_bumps_version_and_keeps_creation_time(self):
        t0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
        audit = AuditInfo.new(t0)
        later = audit.touched(t0 + timedelta(minutes=1))
        assert later.created_at == t0
        assert later.updated_at == t0 + timedelta(minutes=1)
        assert later.version == 2
        assert audit.version == 1
