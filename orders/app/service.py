"""
Order creation workflow: validate the requested lines against the catalog,
price them with the catalog's prices, and persist the order in one unit.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Sequence

from .catalog_client import ProductValidator
from .errors import InvalidOrder, UnknownProducts
from .schemas import OrderItemIn, OrderOut, ProductRef
from .store import OrderLine, OrderPayload, OrderStore

logger = logging.getLogger(__name__)

def check_items(items: Sequence[OrderItemIn]) -> None:
    if not items:
        raise InvalidOrder("items must not be empty")
    bad = [n for n, it in enumerate(items) if not isinstance(it.quantity, int) or it.quantity < 1]
    if bad:
        raise InvalidOrder("quantity must be a positive integer", detail={"lines": bad})

def build_payload(items: Sequence[OrderItemIn], products: Sequence[ProductRef]) -> OrderPayload:
    """
    Price every line with the validated catalog price and sum the totals.
    Lines for the same product are kept as separate lines.
    """
    by_id: Dict[str, ProductRef] = {p.id: p for p in products}
    missing = [it.product_id for it in items if it.product_id not in by_id]
    if missing:
        raise UnknownProducts(missing)

    lines: List[OrderLine] = [
        OrderLine(product_id=it.product_id, price=by_id[it.product_id].price, quantity=it.quantity)
        for it in items
    ]
    total_amount = sum((line.price * line.quantity for line in lines), Decimal("0"))
    total_items = sum(line.quantity for line in lines)
    return OrderPayload(total_amount=total_amount, total_items=total_items, lines=tuple(lines))

def create_order(items: Sequence[OrderItemIn], validator: ProductValidator, store: OrderStore) -> OrderOut:
    check_items(items)
    products = validator.validate({it.product_id for it in items})
    payload = build_payload(items, products)

    order = store.create(payload)
    logger.info(
        "Created order %s: %d item(s), total %s", order.id, payload.total_items, payload.total_amount
    )
    return OrderOut.from_order(order, {p.id: p.name for p in products})
