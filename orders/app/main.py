import logging
import os
import time
from typing import Optional
from fastapi import FastAPI, Depends, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.orm import Session
from starlette.routing import Match

from .catalog_client import HttpProductValidator, ProductValidator
from .db import get_session, init_db
from .errors import OrderError, UnknownProducts, CatalogUnavailable, PersistenceFailure
from .models import OrderStatus
from .schemas import ErrorOut, OrderCreate, OrderOut, OrderPage, OrderStatusChange
from .service import create_order as create_order_workflow
from .store import OrderStore

APP_NAME = "orders"
LISTEN_PORT = int(os.getenv("LISTEN_PORT", "8000"))

logger = logging.getLogger(__name__)

app = FastAPI(title=APP_NAME)

# Create schema + tables at startup (idempotent)
@app.on_event("startup")
def on_startup():
    logging.basicConfig(level=logging.INFO)
    init_db()
    logger.info("Orders database ready.")

# Prometheus metrics
REGISTRY = CollectorRegistry()
REQS = Counter("http_requests_total", "Total HTTP requests", ["service", "path", "method", "status"], registry=REGISTRY)
LAT = Histogram("http_request_duration_seconds", "Request latency", ["service", "path", "method"], registry=REGISTRY)
ORDERS_CREATED = Counter("orders_created_total", "Orders created successfully", registry=REGISTRY)
ORDERS_FAILED = Counter("order_create_failures_total", "Order create failures", ["reason"], registry=REGISTRY)
STATUS_CHANGES = Counter("order_status_changes_total", "Order status change requests", ["status"], registry=REGISTRY)

FAILURE_REASONS = {
    UnknownProducts: "unknown_product",
    CatalogUnavailable: "catalog_unavailable",
    PersistenceFailure: "persistence",
}

def _route_path(request: Request) -> str:
    """Route template for metric labels, e.g. /orders/{order_id}; ids never become labels."""
    partial = None
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return route.path
        if match == Match.PARTIAL and partial is None:
            partial = route.path
    return partial or "<unmatched>"

@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    path = _route_path(request)
    REQS.labels(APP_NAME, path, request.method, response.status_code).inc()
    LAT.labels(APP_NAME, path, request.method).observe(time.time() - start)
    return response

# ---------- Errors ----------
def _error_response(status_code: int, message: str, detail=None) -> JSONResponse:
    body = ErrorOut(status_code=status_code, message=message, detail=detail)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))

@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    return _error_response(exc.status_code, exc.message, exc.detail)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    if request.method == "POST" and _route_path(request) == "/orders":
        ORDERS_FAILED.labels(reason="invalid_items").inc()
    return _error_response(status.HTTP_400_BAD_REQUEST, "invalid request", exc.errors())

# ---------- Dependencies ----------
def get_validator() -> ProductValidator:
    return HttpProductValidator()

def get_store(
    session: Session = Depends(get_session),
    validator: ProductValidator = Depends(get_validator),
) -> OrderStore:
    return OrderStore(session, validator)

@app.get("/health", response_class=PlainTextResponse)
def health():
    return "ok"

@app.get("/metrics")
def metrics():
    return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

# ---------- Endpoints ----------
@app.post("/orders", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    store: OrderStore = Depends(get_store),
    validator: ProductValidator = Depends(get_validator),
):
    try:
        order = create_order_workflow(payload.items, validator, store)
    except OrderError as exc:
        ORDERS_FAILED.labels(reason=FAILURE_REASONS.get(type(exc), "invalid_items")).inc()
        raise
    ORDERS_CREATED.inc()
    return order

@app.get("/orders", response_model=OrderPage)
def list_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    store: OrderStore = Depends(get_store),
):
    return store.find_all(status=status, page=page, limit=limit)

@app.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, store: OrderStore = Depends(get_store)):
    return store.find_one(order_id)

@app.patch("/orders/{order_id}/status", response_model=OrderOut)
def change_order_status(order_id: str, payload: OrderStatusChange, store: OrderStore = Depends(get_store)):
    STATUS_CHANGES.labels(payload.status.value).inc()
    return store.change_status(order_id, payload.status)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=LISTEN_PORT)
