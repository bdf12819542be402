"""
Service Catalog for CleanCare
=============================

The catalog is the list of laundry service categories and the priced items
inside each one. It is served to clients by ``GET /api/services/dynamic`` and
used to price carts.

Sources:
--------
1. **Database**: ``service_categories`` / ``service_items`` when seeded
2. **Built-in default**: ``DEFAULT_CATALOG`` when the tables are empty

Caching:
--------
The assembled catalog is held in a module-level cache for
CATALOG_CACHE_SECONDS (default 5 minutes). Admin writes and
``POST /api/services/refresh`` drop the cache. The cache is guarded by a
threading.Lock since sync handlers run in a threadpool.

Response Shape:
---------------
Each category::

    {"id", "name", "icon", "color", "description", "enabled",
     "services": [{"id", "name", "category", "price", "unit", "description",
                   "minQuantity", "popular", "enabled", "image",
                   "subcategory"?}]}
"""

import copy
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from .. import config
from ..models import ServiceCategory, ServiceItem
from .exceptions import NotFoundError, ValidationFailedError
from .pricing import CartLine, CartTotals, calculate_cart_totals


logger = logging.getLogger(__name__)


def _item(slug, name, price, unit="per piece", description="", min_quantity=1,
          popular=False, subcategory=None):
    item = {
        "id": slug,
        "name": name,
        "price": price,
        "unit": unit,
        "description": description,
        "minQuantity": min_quantity,
        "popular": popular,
        "enabled": True,
        "image": "",
    }
    if subcategory:
        item["subcategory"] = subcategory
    return item


def _category(slug, name, icon, color, description, services):
    for service in services:
        service["category"] = name
    return {
        "id": slug,
        "name": name,
        "icon": icon,
        "color": color,
        "description": description,
        "enabled": True,
        "services": services,
    }


# =============================================================================
# Default Catalog (prices in INR)
# =============================================================================

DEFAULT_CATALOG: List[Dict[str, Any]] = [
    _category("wash-fold", "Wash & Fold", "👕", "from-blue-500 to-blue-600",
              "Professional washing and folding service", [
                  _item("wf-regular", "Laundry and Fold", 70, "per kg",
                        "Regular wash and fold service", popular=True),
                  _item("wf-bulk", "Laundry and Fold (Bulk)", 60, "per kg",
                        "Bulk pricing for 3kg and above", min_quantity=3),
              ]),
    _category("wash-iron", "Wash & Iron", "🏷️", "from-green-500 to-green-600",
              "Washing with professional ironing", [
                  _item("wi-regular", "Laundry and Iron", 120, "per kg",
                        "Professional wash and iron service", popular=True),
                  _item("wi-bulk", "Laundry and Iron (Bulk)", 110, "per kg",
                        "Bulk pricing for 3kg and above", min_quantity=3),
              ]),
    _category("steam-iron", "Steam Iron Only", "🔥", "from-orange-500 to-orange-600",
              "Professional steam ironing service", [
                  _item("si-premium", "Premium Items (Steam Iron)", 50,
                        description="Coat, Lehenga, Sweatshirt, Sweater, Achkan",
                        popular=True, subcategory="Premium"),
                  _item("si-regular", "Regular Items (Steam Iron)", 30,
                        description="All other garments", subcategory="Regular"),
              ]),
    _category("mens-dry-clean", "Men's Dry Clean", "👔", "from-purple-500 to-purple-600",
              "Professional dry cleaning for men's wear", [
                  _item("mdc-shirt", "Shirt/T-Shirt", 90,
                        description="Professional dry cleaning for shirts", popular=True),
                  _item("mdc-trouser", "Trouser/Jeans", 120,
                        description="Dry cleaning for trousers and jeans"),
                  _item("mdc-coat", "Coat", 220, description="Professional coat dry cleaning"),
              ]),
    _category("womens-dry-clean", "Women's Dry Clean", "👗", "from-pink-500 to-pink-600",
              "Specialized dry cleaning for women's wear", [
                  _item("wdc-kurta", "Kurta", 140,
                        description="Professional kurta dry cleaning", popular=True),
                  _item("wdc-salwar", "Salwar/Plazo/Dupatta", 120,
                        description="Bottom wear and dupatta cleaning"),
                  _item("wdc-saree-simple", "Saree (Simple/Silk)", 210,
                        description="Regular and silk saree cleaning"),
                  _item("wdc-lehenga-2pc", "Lehenga (2+ Pieces)", 450, "per set",
                        "Multi-piece lehenga set", popular=True),
              ]),
    _category("woolen-dry-clean", "Woolen Dry Clean", "🧥", "from-indigo-500 to-indigo-600",
              "Specialized care for woolen and winter wear", [
                  _item("wol-jacket", "Jacket (Full/Half Sleeves)", 300,
                        description="Professional jacket cleaning", popular=True),
                  _item("wol-sweater", "Sweater/Sweatshirt", 200,
                        description="Sweater and sweatshirt care"),
                  _item("wol-long-coat", "Long Coat", 400, description="Long winter coat cleaning"),
                  _item("wol-shawl", "Shawl", 250, description="Delicate shawl cleaning"),
                  _item("wol-pashmina", "Pashmina", 550, description="Premium pashmina care"),
                  _item("wol-leather", "Leather Jacket", 600,
                        description="Specialized leather jacket cleaning"),
              ]),
]


# =============================================================================
# Catalog Cache
# =============================================================================

_cache: Dict[str, Any] = {"data": None, "last_fetch": 0.0}
_cache_lock = threading.Lock()


def invalidate_cache() -> None:
    with _cache_lock:
        _cache["data"] = None
        _cache["last_fetch"] = 0.0


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


# =============================================================================
# Loading
# =============================================================================

def _serialize_item(item: ServiceItem, category_name: str) -> Dict[str, Any]:
    data = {
        "id": item.slug,
        "name": item.name,
        "category": category_name,
        "price": item.price,
        "unit": item.unit,
        "description": item.description,
        "minQuantity": item.min_quantity,
        "popular": item.popular,
        "enabled": item.enabled,
        "image": item.image,
    }
    if item.subcategory:
        data["subcategory"] = item.subcategory
    return data


def _has_db_catalog(db: Session) -> bool:
    return db.query(ServiceCategory.id).first() is not None


def load_catalog(db: Session) -> List[Dict[str, Any]]:
    """Build the catalog from the database, or the defaults if it is empty."""
    if not _has_db_catalog(db):
        logger.debug("Service tables empty, using default catalog")
        return copy.deepcopy(DEFAULT_CATALOG)

    categories = (
        db.query(ServiceCategory)
        .filter(ServiceCategory.enabled.is_(True))
        .order_by(ServiceCategory.sort_order, ServiceCategory.id)
        .all()
    )
    return [
        {
            "id": category.slug,
            "name": category.name,
            "icon": category.icon,
            "color": category.color,
            "description": category.description,
            "enabled": category.enabled,
            "services": [
                _serialize_item(item, category.name)
                for item in category.services
                if item.enabled
            ],
        }
        for category in categories
    ]


def get_catalog(db: Session) -> Tuple[List[Dict[str, Any]], bool, str]:
    """
    Return the catalog, served from cache while fresh.

    Returns:
        Tuple of (categories, cached, last_fetch_iso)
    """
    now = time.time()
    with _cache_lock:
        data = _cache["data"]
        last_fetch = _cache["last_fetch"]
    if data is not None and now - last_fetch < config.CATALOG_CACHE_SECONDS:
        return data, True, _iso(last_fetch)

    data = load_catalog(db)
    with _cache_lock:
        _cache["data"] = data
        _cache["last_fetch"] = now
    return data, False, _iso(now)


def refresh_catalog(db: Session) -> Tuple[List[Dict[str, Any]], str]:
    invalidate_cache()
    data, _cached, last_fetch = get_catalog(db)
    logger.info("Service catalog refreshed (%d categories)", len(data))
    return data, last_fetch


def find_service(db: Session, service_id: str) -> Optional[Dict[str, Any]]:
    """Look up an enabled catalog item by its id."""
    data, _cached, _last = get_catalog(db)
    for category in data:
        for service in category["services"]:
            if service["id"] == service_id:
                return service
    return None


# =============================================================================
# Writes
# =============================================================================

def seed_catalog(db: Session) -> int:
    """
    Write DEFAULT_CATALOG into empty service tables.

    Returns:
        Number of service items created (0 if the catalog was already seeded)
    """
    if _has_db_catalog(db):
        return 0

    created = 0
    for cat_index, category in enumerate(DEFAULT_CATALOG):
        row = ServiceCategory(
            slug=category["id"],
            name=category["name"],
            icon=category["icon"],
            color=category["color"],
            description=category["description"],
            enabled=category["enabled"],
            sort_order=cat_index,
        )
        for item_index, service in enumerate(category["services"]):
            row.services.append(ServiceItem(
                slug=service["id"],
                name=service["name"],
                subcategory=service.get("subcategory"),
                price=service["price"],
                unit=service["unit"],
                description=service["description"],
                min_quantity=service["minQuantity"],
                popular=service["popular"],
                enabled=service["enabled"],
                image=service["image"],
                sort_order=item_index,
            ))
            created += 1
        db.add(row)

    db.commit()
    invalidate_cache()
    logger.info("Seeded service catalog with %d items", created)
    return created


UPDATABLE_FIELDS = {
    "price": "price",
    "enabled": "enabled",
    "popular": "popular",
    "description": "description",
    "name": "name",
    "unit": "unit",
    "image": "image",
    "minQuantity": "min_quantity",
}


def update_service(db: Session, service_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply admin edits to one catalog item.

    The default catalog is written to the database first if the tables are
    still empty, so edits always persist.

    Raises:
        NotFoundError: Unknown service id
        ValidationFailedError: Negative price
    """
    seed_catalog(db)

    item = db.query(ServiceItem).filter(ServiceItem.slug == service_id).first()
    if item is None:
        raise NotFoundError("Service not found")

    price = updates.get("price")
    if price is not None and price < 0:
        raise ValidationFailedError("Price cannot be negative")

    changed = []
    for key, attr in UPDATABLE_FIELDS.items():
        if key in updates and updates[key] is not None:
            setattr(item, attr, updates[key])
            changed.append(key)

    db.commit()
    db.refresh(item)
    invalidate_cache()
    logger.info("Updated service %s: %s", service_id, ", ".join(changed) or "no changes")
    return _serialize_item(item, item.category.name)


# =============================================================================
# Quotes
# =============================================================================

def price_cart(
    db: Session,
    quantities: Iterable[Tuple[str, int]],
    coupon_code: Optional[str] = None,
) -> CartTotals:
    """
    Price (service_id, quantity) pairs against the current catalog.

    Raises:
        ValidationFailedError: Unknown service id
        InvalidCouponError: Unknown coupon
    """
    lines = []
    for service_id, quantity in quantities:
        service = find_service(db, service_id)
        if service is None:
            raise ValidationFailedError(f"Unknown service: {service_id}")
        lines.append(CartLine(
            service_id=service_id,
            name=service["name"],
            price=float(service["price"]),
            quantity=quantity,
        ))
    return calculate_cart_totals(lines, coupon_code)
