"""
Service Catalog Routes for CleanCare
====================================

Endpoints:
----------
- GET /services/dynamic: Full catalog grouped by category (cached)
- POST /services/refresh: Drop the cache and reload (admin)
- POST /services/quote: Price a cart against the catalog
- PUT /services/{service_id}: Edit one catalog item (admin)

Caching:
--------
The catalog is cached in-process for CATALOG_CACHE_SECONDS. ``cached`` in the
response tells the client whether it got the cached copy; ``lastFetch`` is
when that copy was built.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import verify_admin_credentials
from ..db import get_db
from ..schemas.catalog import QuoteRequest, ServiceUpdate
from ..services import catalog
from ..services.pricing import InvalidCouponError


logger = logging.getLogger(__name__)

catalog_router = APIRouter(prefix="/services", tags=["Services"])


@catalog_router.get("/dynamic")
def dynamic_services(db: Session = Depends(get_db)):
    data, cached, last_fetch = catalog.get_catalog(db)
    return {"success": True, "data": data, "cached": cached, "lastFetch": last_fetch}


@catalog_router.post("/refresh")
def refresh_services(
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
):
    data, last_fetch = catalog.refresh_catalog(db)
    return {
        "success": True,
        "message": "Services refreshed successfully",
        "data": data,
        "lastFetch": last_fetch,
    }


@catalog_router.post("/quote")
def quote(payload: QuoteRequest, db: Session = Depends(get_db)):
    """Subtotal, delivery charge, coupon discount and total for a cart."""
    try:
        totals = catalog.price_cart(
            db,
            [(item.service_id, item.quantity) for item in payload.items],
            payload.coupon_code,
        )
    except InvalidCouponError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": totals.to_dict()}


@catalog_router.put("/{service_id}")
def update_service(
    service_id: str,
    payload: ServiceUpdate,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
):
    service = catalog.update_service(db, service_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "message": "Service updated successfully", "data": service}
