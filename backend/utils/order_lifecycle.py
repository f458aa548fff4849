import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import FrozenSet, List, Optional

from config.constants import BOOKING_LOCATION, PAYMENT_OPTIONS, PRODUCTION_LOCATION
from models.order import OrderCreate, OrderEvent, OrderRecord, OrderStatus, ProductSnapshot
from models.product import Product
from models.user import PrincipalStatus, Role

logger = logging.getLogger(__name__)


# ======================================================
# ERRORS
# ======================================================

class InvalidTransition(Exception):
    """Requested status is not a legal successor of the current one."""

    def __init__(self, current_status, attempted_status, message: str | None = None):
        self.current_status = _status_value(current_status)
        self.attempted_status = _status_value(attempted_status)
        super().__init__(
            message
            or f"Cannot move order from '{self.current_status}' to '{self.attempted_status}'"
        )


class TransitionForbidden(InvalidTransition):
    """The actor may not perform this transition (wrong role, not the owner, suspended)."""


class OrderValidationError(ValueError):
    pass


def _status_value(status) -> str:
    return status.value if isinstance(status, OrderStatus) else str(status)


# ======================================================
# STATE GRAPH
# ======================================================

STAFF = frozenset({Role.MANAGER, Role.ADMIN})
BUYER_ONLY = frozenset({Role.BUYER})


@dataclass(frozen=True)
class StatusRule:
    successors: FrozenSet[OrderStatus]
    entered_by: FrozenSet[Role]
    owner_only: bool = False
    production_stage: bool = False
    # how the status shows up on the two tracking bars; None = not on the bar
    detailed_step: Optional[str] = None
    buyer_step: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return not self.successors


S = OrderStatus

STATE_GRAPH = MappingProxyType({
    S.PENDING: StatusRule(
        successors=frozenset({S.APPROVED, S.REJECTED, S.CANCELLED}),
        entered_by=BUYER_ONLY,
        owner_only=True,
        detailed_step="ordered",
        buyer_step="pending",
    ),
    S.APPROVED: StatusRule(
        successors=frozenset({S.CUTTING}),
        entered_by=STAFF,
        detailed_step="confirmed",
        buyer_step="approved",
    ),
    S.REJECTED: StatusRule(successors=frozenset(), entered_by=STAFF),
    S.CUTTING: StatusRule(
        successors=frozenset({S.SEWING}),
        entered_by=STAFF,
        production_stage=True,
        detailed_step="cutting",
        buyer_step="approved",
    ),
    S.SEWING: StatusRule(
        successors=frozenset({S.FINISHING}),
        entered_by=STAFF,
        production_stage=True,
        detailed_step="sewing",
        buyer_step="approved",
    ),
    S.FINISHING: StatusRule(
        successors=frozenset({S.QC}),
        entered_by=STAFF,
        production_stage=True,
        detailed_step="finishing",
        buyer_step="approved",
    ),
    S.QC: StatusRule(
        successors=frozenset({S.PACKED}),
        entered_by=STAFF,
        production_stage=True,
        detailed_step="finishing",
        buyer_step="approved",
    ),
    S.PACKED: StatusRule(
        successors=frozenset({S.SHIPPED}),
        entered_by=STAFF,
        production_stage=True,
        detailed_step="packed",
        buyer_step="approved",
    ),
    S.SHIPPED: StatusRule(
        successors=frozenset({S.DELIVERED}),
        entered_by=STAFF,
        detailed_step="shipped",
        buyer_step="shipped",
    ),
    S.DELIVERED: StatusRule(
        successors=frozenset(),
        entered_by=STAFF,
        detailed_step="delivered",
        buyer_step="delivered",
    ),
    S.CANCELLED: StatusRule(
        successors=frozenset(),
        entered_by=BUYER_ONLY,
        owner_only=True,
    ),
})

DETAILED_STEPS = (
    "ordered", "confirmed", "processing", "cutting", "sewing",
    "finishing", "packed", "shipped", "delivered",
)
BUYER_STEPS = ("pending", "approved", "shipped", "delivered")

# stopped states are shown apart from the progress bar
STOPPED_STATUSES = frozenset({S.CANCELLED, S.REJECTED})

for _status, _rule in STATE_GRAPH.items():
    assert _rule.detailed_step is None or _rule.detailed_step in DETAILED_STEPS, _status
    assert _rule.buyer_step is None or _rule.buyer_step in BUYER_STEPS, _status
assert set(STATE_GRAPH) == set(OrderStatus)


def rule_for(status) -> StatusRule:
    return STATE_GRAPH[OrderStatus(status)]


def is_terminal(status) -> bool:
    return rule_for(status).terminal


# ======================================================
# ACTOR CHECKS
# ======================================================

def _coerce_role(actor_role) -> Role | None:
    try:
        return Role(actor_role)
    except ValueError:
        return None


def _check_actor(
    order: OrderRecord,
    target: OrderStatus,
    role: Role | None,
    actor_id: str | None,
    actor_status,
):
    if actor_status is not None and PrincipalStatus(actor_status) == PrincipalStatus.SUSPENDED:
        raise TransitionForbidden(order.status, target, "Suspended accounts cannot modify orders")

    rule = STATE_GRAPH[target]
    if role not in rule.entered_by:
        raise TransitionForbidden(
            order.status,
            target,
            f"Role '{role.value if role else None}' cannot set status '{target.value}'",
        )

    if rule.owner_only and (actor_id is None or str(actor_id) != order.buyer_id):
        raise TransitionForbidden(order.status, target, "Only the ordering buyer can do this")


def allowed_transitions(
    order: OrderRecord,
    actor_role,
    *,
    actor_id: str | None = None,
    actor_status=None,
) -> List[OrderStatus]:
    """Successors of the current status the given actor may apply."""
    role = _coerce_role(actor_role)
    allowed = []
    for target in sorted(STATE_GRAPH[order.status].successors, key=lambda s: s.value):
        try:
            _check_actor(order, target, role, actor_id, actor_status)
        except TransitionForbidden:
            continue
        allowed.append(target)
    return allowed


# ======================================================
# TRANSITIONS
# ======================================================

def apply_transition(
    order: OrderRecord,
    requested_status,
    actor_role,
    notes: str | None = None,
    location: str | None = None,
    *,
    actor_id: str | None = None,
    actor_status=None,
    now: datetime | None = None,
) -> OrderRecord:
    """
    Validate and apply one status change.

    Returns a new OrderRecord carrying the target status and exactly one
    appended OrderEvent. Re-applying the current status returns `order`
    itself. Raises InvalidTransition (or TransitionForbidden) and leaves
    `order` untouched otherwise.
    """
    try:
        target = OrderStatus(requested_status)
    except ValueError:
        raise InvalidTransition(order.status, requested_status, f"Unknown status '{requested_status}'")

    role = _coerce_role(actor_role)

    try:
        _check_actor(order, target, role, actor_id, actor_status)

        if target == order.status:
            return order

        if target not in STATE_GRAPH[order.status].successors:
            raise InvalidTransition(order.status, target)
    except InvalidTransition as exc:
        logger.info(
            "Transition rejected order=%s %s -> %s: %s",
            order.id, order.status.value, target.value, exc,
        )
        raise

    if location is None and STATE_GRAPH[target].production_stage:
        location = PRODUCTION_LOCATION

    event = OrderEvent(
        status=target,
        location=location,
        notes=notes,
        occurred_at=now or datetime.utcnow(),
    )

    return order.model_copy(update={
        "status": target,
        "history": order.history + (event,),
    })


# ======================================================
# BOOKING
# ======================================================

def create_order_record(
    *,
    product: Product,
    payload: OrderCreate,
    buyer_id: str,
    order_id: str | None = None,
    now: datetime | None = None,
) -> OrderRecord:
    """
    Build the initial `pending` record for a booking.
    Quantity limits are checked here only, never on later transitions.
    """
    if payload.quantity < product.minimum_order_quantity:
        raise OrderValidationError(
            f"Minimum order quantity is {product.minimum_order_quantity}"
        )
    if payload.quantity > product.available_quantity:
        raise OrderValidationError(
            f"Only {product.available_quantity} items available"
        )

    allowed_payments = set(product.payment_options) or PAYMENT_OPTIONS
    if payload.payment_option not in allowed_payments:
        raise OrderValidationError(
            f"Invalid payment option. Allowed: {', '.join(sorted(allowed_payments))}"
        )

    now = now or datetime.utcnow()
    unit_price = product.price

    return OrderRecord(
        id=order_id or uuid.uuid4().hex,
        buyer_id=str(buyer_id),
        product_id=product.id,
        product_snapshot=ProductSnapshot(title=product.title, unit_price=unit_price),
        quantity=payload.quantity,
        unit_price=unit_price,
        total_price=round(payload.quantity * unit_price, 2),
        delivery_address=payload.delivery_address,
        contact_number=payload.contact_number,
        payment_option=payload.payment_option,
        status=OrderStatus.PENDING,
        created_at=now,
        history=(
            OrderEvent(
                status=OrderStatus.PENDING,
                location=BOOKING_LOCATION,
                notes="Order placed successfully",
                occurred_at=now,
            ),
        ),
    )
