"""Composition root — wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from dataclasses import dataclass

from rescue.application.accept_order import AcceptOrderHandler
from rescue.application.add_offer import AddOfferHandler
from rescue.application.cancel_order import CancelOrderHandler
from rescue.application.cart_service import CartService
from rescue.application.clock import Clock, SystemClock
from rescue.application.create_order import CreateOrderHandler
from rescue.application.decline_order import DeclineOrderHandler
from rescue.application.expiry_sweeper import ExpirySweeper, PeriodicSweeper
from rescue.application.fulfill_order import FulfillOrderHandler
from rescue.application.identifiers import IdentifierGenerator
from rescue.application.manage_stock import RestockOfferHandler, ShowOffersHandler
from rescue.application.notifications import NotificationPublisher
from rescue.application.payment_orchestrator import PaymentOrchestrator
from rescue.application.policy import OrderPolicy
from rescue.application.process_webhook import ProcessWebhookHandler
from rescue.application.rate_order import RateOrderHandler
from rescue.application.show_order import ListOrdersHandler, ShowOrderHandler
from rescue.domain.gateway import PaymentGateway
from rescue.domain.service.inventory_ledger import InventoryLedger
from rescue.infrastructure.config import Settings
from rescue.infrastructure.gateway.simulated_gateway import SimulatedGateway
from rescue.infrastructure.notifications.logging_publisher import LoggingPublisher
from rescue.infrastructure.persistence.json_database import JsonDatabase
from rescue.infrastructure.persistence.memory_database import InMemoryDatabase


@dataclass
class Container:
    settings: Settings
    database: InMemoryDatabase
    clock: Clock
    gateway: PaymentGateway
    publisher: NotificationPublisher
    identifiers: IdentifierGenerator

    def __post_init__(self) -> None:
        self.policy: OrderPolicy = self.settings.policy()
        self.ledger = InventoryLedger()
        self.payments = PaymentOrchestrator(self.gateway, self.identifiers)
        self.uow_factory = self.database.unit_of_work

    # --- Handlers -------------------------------------------------------------

    def add_offer(self) -> AddOfferHandler:
        return AddOfferHandler(self.uow_factory, self.clock, self.policy, self.identifiers)

    def restock_offer(self) -> RestockOfferHandler:
        return RestockOfferHandler(self.uow_factory, self.ledger)

    def show_offers(self) -> ShowOffersHandler:
        return ShowOffersHandler(self.uow_factory, self.ledger)

    def carts(self) -> CartService:
        return CartService(self.uow_factory, self.clock, self.policy, self.identifiers)

    def create_order(self) -> CreateOrderHandler:
        return CreateOrderHandler(
            self.uow_factory,
            self.ledger,
            self.payments,
            self.publisher,
            self.clock,
            self.policy,
            self.identifiers,
        )

    def accept_order(self) -> AcceptOrderHandler:
        return AcceptOrderHandler(self.uow_factory, self.ledger, self.payments, self.publisher, self.clock)

    def decline_order(self) -> DeclineOrderHandler:
        return DeclineOrderHandler(self.uow_factory, self.ledger, self.payments, self.publisher, self.clock)

    def cancel_order(self) -> CancelOrderHandler:
        return CancelOrderHandler(self.uow_factory, self.ledger, self.payments, self.publisher, self.clock)

    def fulfill_order(self) -> FulfillOrderHandler:
        return FulfillOrderHandler(self.uow_factory, self.publisher, self.clock, self.policy)

    def rate_order(self) -> RateOrderHandler:
        return RateOrderHandler(self.uow_factory, self.clock, self.policy)

    def show_order(self) -> ShowOrderHandler:
        return ShowOrderHandler(self.uow_factory)

    def list_orders(self) -> ListOrdersHandler:
        return ListOrdersHandler(self.uow_factory)

    def process_webhook(self) -> ProcessWebhookHandler:
        return ProcessWebhookHandler(self.uow_factory, self.gateway, self.publisher, self.clock)

    def sweeper(self) -> ExpirySweeper:
        return ExpirySweeper(
            self.uow_factory,
            self.ledger,
            self.payments,
            self.publisher,
            self.clock,
            self.policy,
        )

    def periodic_sweeper(self) -> PeriodicSweeper:
        return PeriodicSweeper(self.sweeper(), self.settings.sweep_interval_seconds)


def simulated_gateway(settings: Settings) -> SimulatedGateway:
    gateway = SimulatedGateway(settings.webhook_secret)
    for pair in filter(None, (p.strip() for p in settings.gateway_modes.split(","))):
        operation, _, mode = pair.partition("=")
        gateway.set_mode(operation.strip(), mode.strip())
    return gateway


def build_container(
    settings: Settings | None = None,
    database: InMemoryDatabase | None = None,
    clock: Clock | None = None,
    gateway: PaymentGateway | None = None,
    publisher: NotificationPublisher | None = None,
    identifiers: IdentifierGenerator | None = None,
) -> Container:
    """Wire the application; anything not given gets its production default."""
    settings = settings or Settings.from_env()
    return Container(
        settings=settings,
        database=database or JsonDatabase(settings.data_file, settings.lock_timeout_seconds),
        clock=clock or SystemClock(),
        gateway=gateway or simulated_gateway(settings),
        publisher=publisher or LoggingPublisher(),
        identifiers=identifiers or IdentifierGenerator(),
    )
