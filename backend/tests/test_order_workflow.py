import asyncio

import pytest

from models.order import OrderStatus
from models.user import Principal, Role
from utils.order_lifecycle import InvalidTransition, OrderValidationError, TransitionForbidden
from utils.order_store import OrderStoreFailure
from utils.order_workflow import (
    AccountSuspended,
    InFlightRegistry,
    OrderWorkflow,
    RecordNotFound,
    TransitionInProgress,
)

BUYER = Principal(id="buyer", email="buyer@garmentflow.com", role=Role.BUYER)
OTHER = Principal(id="other", email="other@garmentflow.com", role=Role.BUYER)
MANAGER = Principal(id="manager", email="manager@garmentflow.com", role=Role.MANAGER)
SUSPENDED = Principal(
    id="suspended", email="suspended@garmentflow.com", role=Role.MANAGER, status="suspended",
)


@pytest.fixture
def workflow(store):
    return OrderWorkflow(store, in_flight=InFlightRegistry())


@pytest.fixture
async def placed(workflow, booking):
    return await workflow.book(BUYER, booking)


class TestBooking:

    async def test_book_persists_pending_order(self, workflow, store, booking):
        order = await workflow.book(BUYER, booking)

        assert store.orders[order.id] == order
        assert order.buyer_id == "buyer"
        assert order.total_price == 2500
        assert order.status == OrderStatus.PENDING

    async def test_unknown_product(self, workflow, booking):
        with pytest.raises(RecordNotFound):
            await workflow.book(BUYER, booking.model_copy(update={"product_id": "nope"}))

    async def test_over_available_quantity(self, workflow, store, booking):
        with pytest.raises(OrderValidationError):
            await workflow.book(BUYER, booking.model_copy(update={"quantity": 11}))
        assert store.orders == {}

    async def test_suspended_cannot_book(self, workflow, booking):
        with pytest.raises(AccountSuspended):
            await workflow.book(SUSPENDED, booking)


class TestTransitions:

    async def test_approve_persists(self, workflow, store, placed):
        order = await workflow.transition(MANAGER, placed.id, "approved", notes="ok")

        assert order.status == OrderStatus.APPROVED
        assert store.orders[placed.id].status == OrderStatus.APPROVED
        assert store.orders[placed.id].history[-1].notes == "ok"

    async def test_idempotent_resubmit_does_not_write(self, workflow, store, placed):
        first = await workflow.transition(MANAGER, placed.id, "approved")
        second = await workflow.transition(MANAGER, placed.id, "approved")

        assert second == first
        assert len(store.orders[placed.id].history) == 2

    async def test_invalid_transition_leaves_store_untouched(self, workflow, store, placed):
        with pytest.raises(InvalidTransition):
            await workflow.transition(MANAGER, placed.id, "shipped")
        assert store.orders[placed.id] == placed

    async def test_owner_cancels(self, workflow, placed):
        order = await workflow.transition(BUYER, placed.id, OrderStatus.CANCELLED)
        assert order.status == OrderStatus.CANCELLED

    async def test_other_buyer_cannot_see_order(self, workflow, placed):
        with pytest.raises(RecordNotFound):
            await workflow.transition(OTHER, placed.id, "cancelled")

    async def test_suspended_manager_cannot_approve(self, workflow, placed):
        with pytest.raises(TransitionForbidden):
            await workflow.transition(SUSPENDED, placed.id, "approved")

    async def test_store_failure_is_retryable(self, workflow, store, placed):
        store.fail = True
        with pytest.raises(OrderStoreFailure):
            await workflow.transition(MANAGER, placed.id, "approved")

        store.fail = False
        assert store.orders[placed.id].status == OrderStatus.PENDING
        order = await workflow.transition(MANAGER, placed.id, "approved")
        assert order.status == OrderStatus.APPROVED

    async def test_concurrent_transition_is_refused(self, workflow, store, placed):
        gate = asyncio.Event()
        original_save = store.save_transition

        async def slow_save(before, after):
            await gate.wait()
            return await original_save(before, after)

        store.save_transition = slow_save

        first = asyncio.create_task(workflow.transition(MANAGER, placed.id, "approved"))
        await asyncio.sleep(0)

        with pytest.raises(TransitionInProgress):
            await workflow.transition(MANAGER, placed.id, "approved")

        gate.set()
        assert (await first).status == OrderStatus.APPROVED
        assert placed.id not in workflow.in_flight

    async def test_lost_race_is_reported(self, workflow, store, placed):
        # another process moved the order between our read and our write
        original_get = store.get_order

        async def stale_get(order_id):
            order = await original_get(order_id)
            store.orders[order_id] = order.model_copy(update={"status": OrderStatus.REJECTED})
            return order

        store.get_order = stale_get
        with pytest.raises(InvalidTransition) as exc:
            await workflow.transition(MANAGER, placed.id, "approved")
        assert exc.value.current_status == "rejected"


class TestVisibility:

    async def test_buyer_lists_own_orders(self, workflow, placed):
        assert await workflow.orders_for_buyer(BUYER, "buyer") == [placed]

    async def test_buyer_cannot_list_others(self, workflow, placed):
        with pytest.raises(RecordNotFound):
            await workflow.orders_for_buyer(OTHER, "buyer")

    async def test_manager_lists_any_buyer(self, workflow, placed):
        assert await workflow.orders_for_buyer(MANAGER, "buyer") == [placed]

    async def test_actions_for(self, workflow, placed):
        assert workflow.actions_for(BUYER, placed) == [OrderStatus.CANCELLED]
        assert workflow.actions_for(OTHER, placed) == []
        assert workflow.actions_for(MANAGER, placed) == [OrderStatus.APPROVED, OrderStatus.REJECTED]
