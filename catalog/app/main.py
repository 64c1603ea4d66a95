import logging
import os
import time
from typing import List
from fastapi import FastAPI, APIRouter, HTTPException, Depends, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.routing import Match

from .db import get_session, init_db
from .models import Product
from .schemas import ProductIn, ProductOut, ValidateIn, ValidatedProduct

APP_NAME = "catalog"
LISTEN_PORT = int(os.getenv("LISTEN_PORT", "8000"))

# Optional prefix for routes. Leave empty ("") if your Gateway strips /api/catalog.
# If your Gateway does NOT strip the prefix, set API_PREFIX="/api/catalog".
API_PREFIX = os.getenv("API_PREFIX", "").strip()
if API_PREFIX and not API_PREFIX.startswith("/"):
    API_PREFIX = "/" + API_PREFIX
API_PREFIX = API_PREFIX.rstrip("/")

logger = logging.getLogger(__name__)

app = FastAPI(title=APP_NAME)
router = APIRouter(prefix=API_PREFIX)

# ---- Startup: ensure schema + tables exist (idempotent) ----
@app.on_event("startup")
def on_startup():
    logging.basicConfig(level=logging.INFO)
    init_db()
    logger.info("Catalog database ready.")

# ---- Prometheus metrics ----
REGISTRY = CollectorRegistry()
REQS = Counter("http_requests_total", "Total HTTP requests", ["service", "path", "method", "status"], registry=REGISTRY)
LAT  = Histogram("http_request_duration_seconds", "Request latency", ["service", "path", "method"], registry=REGISTRY)
VALIDATIONS = Counter("product_validations_total", "Product validation requests", ["outcome"], registry=REGISTRY)

def _route_path(request: Request) -> str:
    """Route template for metric labels, e.g. /products/{pid}; ids never become labels."""
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

@app.get("/health", response_class=PlainTextResponse)
def health():
    return "ok"

@app.get("/metrics")
def metrics():
    return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

@router.get("/products", response_model=List[ProductOut])
def list_products(session: Session = Depends(get_session)):
    rows = session.execute(select(Product).order_by(Product.name, Product.id)).scalars().all()
    return rows

@router.post("/products", response_model=ProductOut, status_code=201)
def create_product(payload: ProductIn, session: Session = Depends(get_session)):
    if payload.id is not None and session.get(Product, payload.id):
        raise HTTPException(status_code=409, detail=f"product {payload.id} already exists")
    p = Product(name=payload.name, price=payload.price, stock=payload.stock)
    if payload.id is not None:
        p.id = payload.id
    session.add(p)
    session.flush()
    session.refresh(p)
    return p

@router.post("/products/validate", response_model=List[ValidatedProduct])
def validate_products(payload: ValidateIn, session: Session = Depends(get_session)):
    """
    Return the requested products that exist. Unknown ids are left out
    rather than reported; callers compare against what they asked for.
    """
    ids = sorted(set(payload.ids))
    if not ids:
        return []
    rows = session.execute(select(Product).where(Product.id.in_(ids))).scalars().all()
    VALIDATIONS.labels("complete" if len(rows) == len(ids) else "partial").inc()
    if len(rows) != len(ids):
        logger.info("Validation asked for %d product(s), %d found", len(ids), len(rows))
    return rows

@router.get("/products/{pid}", response_model=ProductOut)
def get_product(pid: str, session: Session = Depends(get_session)):
    p = session.get(Product, pid)
    if not p:
        raise HTTPException(status_code=404, detail="not found")
    return p

@router.put("/products/{pid}", response_model=ProductOut)
def update_product(pid: str, payload: ProductIn, session: Session = Depends(get_session)):
    p = session.get(Product, pid)
    if not p:
        raise HTTPException(status_code=404, detail="not found")
    p.name = payload.name
    p.price = payload.price
    p.stock = payload.stock
    session.add(p)
    session.flush()
    session.refresh(p)
    return p

@router.delete("/products/{pid}", status_code=204)
def delete_product(pid: str, session: Session = Depends(get_session)):
    p = session.get(Product, pid)
    if not p:
        raise HTTPException(status_code=404, detail="not found")
    session.delete(p)
    return Response(status_code=204)

app.include_router(router)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=LISTEN_PORT)
