from fastapi import APIRouter, Depends, Query

from config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from models.order import CancelRequest, OrderCreate, OrderStatus, StatusUpdate, TrackingUpdate
from models.user import Principal, Role
from utils.dependencies import get_order_store, get_order_workflow
from utils.order_workflow import APPROVED_QUEUE, PENDING_QUEUE
from utils.security import get_current_principal, require_active, require_role
from utils.serializers import serialize_event, serialize_order
from utils.tracking import TrackingView, project

router = APIRouter(prefix="/api/orders", tags=["Orders"])

staff_only = require_role(Role.MANAGER, Role.ADMIN)


def _page(total: int, orders, page: int, limit: int, principal: Principal, workflow) -> dict:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "orders": [serialize_order(o, workflow.actions_for(principal, o)) for o in orders],
    }


# ======================================================
# BOOKING (BUYER)
# ======================================================

@router.post("", status_code=201)
async def create_order(
    data: OrderCreate,
    principal: Principal = Depends(require_active),
    workflow=Depends(get_order_workflow),
):
    order = await workflow.book(principal, data)
    return {
        "message": "Order placed successfully",
        "order": serialize_order(order, workflow.actions_for(principal, order)),
    }


# ======================================================
# LISTINGS
# ======================================================

@router.get("")
async def all_orders(
    status: OrderStatus | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    admin: Principal = Depends(require_role(Role.ADMIN)),
    store=Depends(get_order_store),
    workflow=Depends(get_order_workflow),
):
    total, orders = await store.list_by_status(
        [status] if status else None,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return _page(total, orders, page, limit, admin, workflow)


@router.get("/pending")
async def pending_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    staff: Principal = Depends(staff_only),
    store=Depends(get_order_store),
    workflow=Depends(get_order_workflow),
):
    total, orders = await store.list_by_status(PENDING_QUEUE, skip=(page - 1) * limit, limit=limit)
    return _page(total, orders, page, limit, staff, workflow)


@router.get("/approved")
async def approved_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    staff: Principal = Depends(staff_only),
    store=Depends(get_order_store),
    workflow=Depends(get_order_workflow),
):
    total, orders = await store.list_by_status(APPROVED_QUEUE, skip=(page - 1) * limit, limit=limit)
    return _page(total, orders, page, limit, staff, workflow)


@router.get("/user/{user_id}")
async def user_orders(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    workflow=Depends(get_order_workflow),
):
    orders = await workflow.orders_for_buyer(principal, user_id)
    return {
        "count": len(orders),
        "orders": [serialize_order(o, workflow.actions_for(principal, o)) for o in orders],
    }


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    workflow=Depends(get_order_workflow),
):
    order = await workflow.get_visible(principal, order_id)
    return serialize_order(order, workflow.actions_for(principal, order))


@router.get("/{order_id}/tracking")
async def order_tracking(
    order_id: str,
    view: TrackingView = Query(TrackingView.BUYER),
    principal: Principal = Depends(get_current_principal),
    workflow=Depends(get_order_workflow),
):
    order = await workflow.get_visible(principal, order_id)
    return project(order, view).to_dict()


# ======================================================
# TRANSITIONS
# ======================================================

@router.put("/{order_id}/status")
async def update_order_status(
    order_id: str,
    data: StatusUpdate,
    principal: Principal = Depends(require_active),
    workflow=Depends(get_order_workflow),
):
    order = await workflow.transition(principal, order_id, data.status, notes=data.notes)
    return {
        "success": True,
        "order": serialize_order(order, workflow.actions_for(principal, order)),
    }


@router.post("/{order_id}/tracking", dependencies=[Depends(require_active)])
async def add_tracking_update(
    order_id: str,
    data: TrackingUpdate,
    staff: Principal = Depends(staff_only),
    workflow=Depends(get_order_workflow),
):
    order = await workflow.transition(
        staff,
        order_id,
        data.status,
        notes=data.notes,
        location=data.location,
    )
    return {
        "success": True,
        "event": serialize_event(order.latest_event),
        "status": order.status.value,
    }


@router.patch("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    data: CancelRequest | None = None,
    principal: Principal = Depends(require_active),
    workflow=Depends(get_order_workflow),
):
    order = await workflow.transition(
        principal,
        order_id,
        OrderStatus.CANCELLED,
        notes=data.notes if data else None,
    )
    return {
        "success": True,
        "order": serialize_order(order, workflow.actions_for(principal, order)),
    }
