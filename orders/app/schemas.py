from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .models import Order, OrderStatus

class OrderItemIn(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)

class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(min_length=1)

class OrderStatusChange(BaseModel):
    status: OrderStatus

class ProductRef(BaseModel):
    """Product record as answered by the catalog's validate endpoint."""
    id: str
    name: str
    # same scale as the snapshot columns, so totals match the stored lines
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    price: Decimal
    quantity: int
    # None when the catalog no longer knows the product
    name: Optional[str] = None

class OrderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    total_amount: Decimal
    total_items: int
    status: OrderStatus
    created_at: datetime
    updated_at: datetime

class OrderOut(OrderSummary):
    items: List[OrderItemOut]

    @classmethod
    def from_order(cls, order: Order, names: Dict[str, str]) -> "OrderOut":
        """Build the response for a persisted order, joining product names in."""
        return cls(
            id=order.id,
            total_amount=order.total_amount,
            total_items=order.total_items,
            status=order.status,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[
                OrderItemOut(
                    product_id=i.product_id,
                    price=i.price,
                    quantity=i.quantity,
                    name=names.get(i.product_id),
                )
                for i in order.items
            ],
        )

class PageMeta(BaseModel):
    total_orders: int
    current_page: int
    last_page: int

class OrderPage(BaseModel):
    data: List[OrderSummary]
    meta: PageMeta

class ErrorOut(BaseModel):
    status_code: int
    message: str
    detail: Optional[Any] = None
