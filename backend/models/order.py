from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Tuple
from datetime import datetime
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    # production stages
    CUTTING = "cutting"
    SEWING = "sewing"
    FINISHING = "finishing"
    QC = "qc"
    PACKED = "packed"

    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ProductSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    unit_price: float


class OrderEvent(BaseModel):
    """One history entry. Never modified after it is appended."""
    model_config = ConfigDict(frozen=True)

    status: OrderStatus
    location: Optional[str] = None
    notes: Optional[str] = None
    occurred_at: datetime


class OrderRecord(BaseModel):
    """
    Placed order. Frozen: a new status only ever arrives through
    utils.order_lifecycle.apply_transition, which returns a copy.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    buyer_id: str
    product_id: str
    product_snapshot: ProductSnapshot

    quantity: int
    unit_price: float
    total_price: float

    delivery_address: str
    contact_number: str
    payment_option: str

    status: OrderStatus
    created_at: datetime
    history: Tuple[OrderEvent, ...] = ()

    @property
    def latest_event(self) -> Optional[OrderEvent]:
        return self.history[-1] if self.history else None


# ======================
# Request payloads
# ======================

class OrderCreate(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    delivery_address: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1)
    payment_option: str


class StatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None


class TrackingUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None
    location: Optional[str] = None


class CancelRequest(BaseModel):
    notes: Optional[str] = None
