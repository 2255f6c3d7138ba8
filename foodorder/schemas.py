from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, PositiveInt, field_validator
from pydantic.config import ConfigDict


class OrderItemRead(BaseModel):
    order_item_id: int
    menu_item_id: Optional[int] = None
    quantity: int
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    order_id: int
    user_id: int
    status: str
    created_at: Optional[datetime] = None
    items: List[OrderItemRead] = []

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    order: OrderRead


class DeleteResponse(BaseModel):
    message: str


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., ge=0)
    email: str = Field(..., min_length=3, max_length=254)
    order_id: PositiveInt

    @field_validator("email")
    def looks_like_email(cls, v: str):
        v = v.strip()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v


class PaymentRead(BaseModel):
    payment_id: int
    order_id: Optional[int] = None
    amount: Decimal
    method: str
    status: str
    session_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CheckoutResponse(BaseModel):
    payment: PaymentRead
    redirectUrl: Optional[str] = None
