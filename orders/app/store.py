import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .catalog_client import ProductValidator
from .errors import InvalidOrder, OrderNotFound, PersistenceFailure
from .models import Order, OrderItem, OrderStatus
from .schemas import OrderOut, OrderPage, OrderSummary, PageMeta

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class OrderLine:
    product_id: str
    price: Decimal
    quantity: int

@dataclass(frozen=True)
class OrderPayload:
    total_amount: Decimal
    total_items: int
    lines: Tuple[OrderLine, ...]

class OrderStore:
    """
    Data access for orders. Holds the request's Session and the product
    validator used to join item names into read results.
    """

    def __init__(self, session: Session, validator: ProductValidator):
        self.session = session
        self.validator = validator

    def create(self, payload: OrderPayload) -> Order:
        """Persist the order and all of its items as one unit, or nothing."""
        order = Order(
            total_amount=payload.total_amount,
            total_items=payload.total_items,
            status=OrderStatus.PENDING,
            items=[
                OrderItem(position=n, product_id=line.product_id, price=line.price, quantity=line.quantity)
                for n, line in enumerate(payload.lines)
            ],
        )
        self.session.add(order)
        self._commit("Failed to persist order with %d item(s)", len(payload.lines))
        return order

    def find_all(self, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 10) -> OrderPage:
        if limit < 1:
            raise InvalidOrder("limit must be a positive integer", detail={"limit": limit})
        if page < 1:
            raise InvalidOrder("page must be a positive integer", detail={"page": page})

        where = [Order.status == status] if status is not None else []
        total = self.session.execute(select(func.count(Order.id)).where(*where)).scalar_one()
        rows = self.session.execute(
            select(Order)
            .where(*where)
            .order_by(Order.created_at, Order.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return OrderPage(
            data=[OrderSummary.model_validate(o) for o in rows],
            meta=PageMeta(total_orders=total, current_page=page, last_page=math.ceil(total / limit)),
        )

    def _load(self, order_id: str) -> Order:
        order = self.session.execute(
            select(Order).where(Order.id == order_id).options(selectinload(Order.items))
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def find_one(self, order_id: str) -> OrderOut:
        order = self._load(order_id)
        return OrderOut.from_order(order, self._names_for(order.items))

    def change_status(self, order_id: str, status: OrderStatus) -> OrderOut:
        try:
            status = OrderStatus(status)
        except ValueError as exc:
            allowed = [s.value for s in OrderStatus]
            raise InvalidOrder(f"status must be one of: {', '.join(allowed)}", detail={"status": str(status)}) from exc

        current = self.find_one(order_id)
        if current.status == status:
            return current

        order = self._load(order_id)
        order.status = status
        self._commit("Failed to update status of order %s", order_id)

        logger.info("Order %s status %s -> %s", order_id, current.status.value, status.value)
        return current.model_copy(update={"status": order.status, "updated_at": order.updated_at})

    def _commit(self, failure_msg: str, *args) -> None:
        """Flush and commit the pending writes, or roll all of them back."""
        try:
            self.session.flush()
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(failure_msg, *args)
            raise PersistenceFailure(str(exc)) from exc

    def _names_for(self, items: List[OrderItem]) -> Dict[str, str]:
        product_ids = {i.product_id for i in items}
        products = self.validator.validate(product_ids)
        return {p.id: p.name for p in products}
