"""Unit tests for the Payment aggregate."""

from datetime import datetime, timezone

import pytest

from rescue.domain.exceptions import InvalidStatus
from rescue.domain.model.payment import Payment, PaymentStatus, idempotency_key_for
from rescue.domain.model.value_objects import AuditInfo, Money

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _payment() -> Payment:
    return Payment(
        id="pay-1",
        order_id="order-1",
        amount=Money.of("11.00"),
        idempotency_key=idempotency_key_for("order-1"),
        payment_method="pm_card_visa",
        audit=AuditInfo.new(NOW),
    )


class TestPaymentTransitions:

    def test_authorize_then_capture(self):
        payment = _payment()
        payment.mark_authorized("auth_1", NOW)
        assert payment.holds_funds
        payment.mark_captured("cap_1", NOW)
        assert payment.status == PaymentStatus.CAPTURED
        assert payment.capture_transaction_id == "cap_1"
        assert not payment.holds_funds

    def test_failed_capture_still_holds_funds_until_voided(self):
        payment = _payment()
        payment.mark_authorized("auth_1", NOW)
        payment.mark_failed("card expired", NOW)
        assert payment.holds_funds
        payment.mark_voided(NOW)
        assert payment.status == PaymentStatus.VOIDED
        assert not payment.holds_funds

    def test_failed_pre_auth_holds_nothing(self):
        payment = _payment()
        payment.mark_failed("declined", NOW)
        assert not payment.holds_funds

    def test_captured_payment_cannot_move_back(self):
        payment = _payment()
        payment.mark_authorized("auth_1", NOW)
        payment.mark_captured("cap_1", NOW)
        with pytest.raises(InvalidStatus, match="CAPTURED to AUTHORIZED"):
            payment.mark_authorized("auth_2", NOW)
        assert payment.status == PaymentStatus.CAPTURED

    def test_refund_only_after_capture(self):
        payment = _payment()
        payment.mark_authorized("auth_1", NOW)
        with pytest.raises(InvalidStatus):
            payment.mark_refunded("ref_1", NOW)

    def test_terminal_statuses(self):
        assert {s for s in PaymentStatus if s.is_terminal} == {
            PaymentStatus.VOIDED,
            PaymentStatus.REFUNDED,
        }

    def test_idempotency_key(self):
        assert idempotency_key_for("order-1") == "preauth:order-1"
