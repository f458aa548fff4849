import logging
from contextlib import contextmanager
from typing import List

from models.order import OrderCreate, OrderRecord, OrderStatus
from models.user import Principal, Role
from utils.guards import assert_consistent_order
from utils.order_lifecycle import apply_transition, allowed_transitions, create_order_record

logger = logging.getLogger(__name__)

PENDING_QUEUE = (OrderStatus.PENDING,)
APPROVED_QUEUE = (
    OrderStatus.APPROVED,
    OrderStatus.CUTTING,
    OrderStatus.SEWING,
    OrderStatus.FINISHING,
    OrderStatus.QC,
    OrderStatus.PACKED,
    OrderStatus.SHIPPED,
)


class RecordNotFound(LookupError):
    pass


class AccountSuspended(PermissionError):
    pass


class TransitionInProgress(Exception):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"A status change for order {order_id} is already in progress")


class InFlightRegistry:
    """Order ids with a transition request still outstanding."""

    def __init__(self):
        self._order_ids = set()

    def __contains__(self, order_id) -> bool:
        return order_id in self._order_ids

    @contextmanager
    def hold(self, order_id: str):
        if order_id in self._order_ids:
            raise TransitionInProgress(order_id)
        self._order_ids.add(order_id)
        try:
            yield
        finally:
            self._order_ids.discard(order_id)


IN_FLIGHT = InFlightRegistry()


def can_view(principal: Principal, order: OrderRecord) -> bool:
    return principal.role in (Role.MANAGER, Role.ADMIN) or order.buyer_id == principal.id


class OrderWorkflow:
    def __init__(self, store, *, in_flight: InFlightRegistry = IN_FLIGHT):
        self.store = store
        self.in_flight = in_flight

    async def book(self, principal: Principal, payload: OrderCreate) -> OrderRecord:
        if principal.is_suspended:
            raise AccountSuspended("Suspended accounts cannot place orders")

        product = await self.store.get_product(payload.product_id)
        if not product:
            raise RecordNotFound("Product not found")

        order = create_order_record(
            product=product,
            payload=payload,
            buyer_id=principal.id,
            order_id=self.store.new_order_id(),
        )
        order = await self.store.insert_order(order)
        logger.info("Order %s placed by %s for %s x%d", order.id, principal.id, product.id, order.quantity)
        return order

    async def get_visible(self, principal: Principal, order_id: str) -> OrderRecord:
        order = await self.store.get_order(order_id)
        if not order or not can_view(principal, order):
            raise RecordNotFound("Order not found")
        return order

    async def orders_for_buyer(self, principal: Principal, buyer_id: str) -> List[OrderRecord]:
        if principal.role == Role.BUYER and buyer_id != principal.id:
            raise RecordNotFound("Orders not found")
        return await self.store.list_by_buyer(buyer_id)

    def actions_for(self, principal: Principal, order: OrderRecord) -> List[OrderStatus]:
        return allowed_transitions(
            order,
            principal.role,
            actor_id=principal.id,
            actor_status=principal.status,
        )

    async def transition(
        self,
        principal: Principal,
        order_id: str,
        status,
        *,
        notes: str | None = None,
        location: str | None = None,
    ) -> OrderRecord:
        """
        Apply and persist one transition. A second request for the same
        order while this one is outstanding raises TransitionInProgress.
        """
        with self.in_flight.hold(order_id):
            order = await self.get_visible(principal, order_id)
            assert_consistent_order(order)

            updated = apply_transition(
                order,
                status,
                principal.role,
                notes,
                location,
                actor_id=principal.id,
                actor_status=principal.status,
            )
            if updated is order:
                return order

            saved = await self.store.save_transition(order, updated)
            logger.info(
                "Order %s moved %s -> %s by %s (%s)",
                order.id, order.status.value, saved.status.value, principal.id, principal.role.value,
            )
            return saved
