from pydantic import BaseModel, Field
from typing import List


class Product(BaseModel):
    id: str
    title: str
    price: float = Field(..., gt=0)

    minimum_order_quantity: int = Field(1, ge=1)
    available_quantity: int = Field(..., ge=0)

    payment_options: List[str] = Field(default_factory=list)
