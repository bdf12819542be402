"""
Client-side cart.

Holds service id -> quantity against a catalog in the ``/services/dynamic``
shape and prices it with the same arithmetic the server uses.
"""

from typing import Any, Dict, Iterable, List, Optional

from ..services.pricing import CartLine, CartTotals, calculate_cart_totals
from .api_client import ApiClient


class UnknownServiceError(KeyError):
    pass


class Cart:
    def __init__(self, catalog: Iterable[Dict[str, Any]]):
        self._services: Dict[str, Dict[str, Any]] = {
            service["id"]: service
            for category in catalog
            for service in category.get("services", [])
        }
        self._quantities: Dict[str, int] = {}

    @classmethod
    def from_api(cls, api: ApiClient) -> "Cart":
        result = api.get("/services/dynamic")
        return cls(result.data.get("data", []) if result.success else [])

    def set_quantity(self, service_id: str, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        if service_id not in self._services:
            raise UnknownServiceError(service_id)
        if quantity <= 0:
            self._quantities.pop(service_id, None)
        else:
            self._quantities[service_id] = quantity

    def add(self, service_id: str, quantity: int = 1) -> None:
        self.set_quantity(service_id, self._quantities.get(service_id, 0) + quantity)

    def remove(self, service_id: str) -> None:
        self._quantities.pop(service_id, None)

    def clear(self) -> None:
        self._quantities.clear()

    @property
    def quantities(self) -> Dict[str, int]:
        return dict(self._quantities)

    def __len__(self) -> int:
        return len(self._quantities)

    def lines(self) -> List[CartLine]:
        return [
            CartLine(
                service_id=service_id,
                name=self._services[service_id]["name"],
                price=float(self._services[service_id]["price"]),
                quantity=quantity,
            )
            for service_id, quantity in self._quantities.items()
        ]

    def totals(self, coupon_code: Optional[str] = None) -> CartTotals:
        """Raises InvalidCouponError for an unknown coupon."""
        return calculate_cart_totals(self.lines(), coupon_code)

    def item_prices(self) -> List[Dict[str, Any]]:
        """Lines in the ``item_prices`` shape bookings carry."""
        return [
            {
                "service_name": line.name,
                "quantity": line.quantity,
                "unit_price": line.price,
                "total_price": line.line_total,
            }
            for line in self.lines()
        ]
