"""
Cart pricing utilities.

This module centralizes the money arithmetic shared by the quote endpoint,
booking creation and the client-side cart:

- subtotal = sum(price * quantity)
- delivery charge: fixed DELIVERY_CHARGE for any non-empty cart
- coupon discount = round_half_up(subtotal * percent / 100)
- total = subtotal + delivery - discount
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

from .. import config


class InvalidCouponError(ValueError):
    """Raised for a coupon code that is not in the coupon table."""


def round_money(amount: float) -> float:
    """Round to 2 decimal places for currency."""
    return round(amount, 2)


def round_half_up(amount: float) -> int:
    """Round to the nearest whole rupee, halves away from zero."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Coupon:
    code: str
    discount: int  # percent
    description: str = ""


def lookup_coupon(code: str | None) -> Coupon:
    """
    Resolve a coupon code (case-insensitive).

    Raises:
        InvalidCouponError: If the code is empty or unknown.
    """
    normalized = (code or "").strip().upper()
    entry = config.COUPONS.get(normalized)
    if not normalized or entry is None:
        raise InvalidCouponError("The coupon code you entered is not valid.")
    return Coupon(
        code=normalized,
        discount=int(entry["discount"]),
        description=str(entry.get("description", "")),
    )


@dataclass
class CartLine:
    service_id: str
    name: str
    price: float
    quantity: int

    @property
    def line_total(self) -> float:
        return round_money(self.price * self.quantity)


@dataclass
class CartTotals:
    """Totals for a priced cart."""

    subtotal: float
    delivery_charge: float
    discount: float
    coupon: Coupon | None = None
    lines: list[CartLine] = field(default_factory=list)

    @property
    def total(self) -> float:
        return round_money(self.subtotal + self.delivery_charge - self.discount)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [
                {
                    "serviceId": line.service_id,
                    "name": line.name,
                    "price": line.price,
                    "quantity": line.quantity,
                    "lineTotal": line.line_total,
                }
                for line in self.lines
            ],
            "subtotal": self.subtotal,
            "deliveryCharge": self.delivery_charge,
            "discount": self.discount,
            "coupon": self.coupon.code if self.coupon else None,
            "total": self.total,
        }


def calculate_cart_totals(lines: Iterable[CartLine], coupon_code: str | None = None) -> CartTotals:
    """
    Price a cart.

    Args:
        lines: Cart lines; lines with a non-positive quantity are ignored
        coupon_code: Optional coupon code

    Raises:
        InvalidCouponError: If coupon_code is given but unknown.
    """
    kept = [line for line in lines if line.quantity > 0]
    subtotal = round_money(sum(line.price * line.quantity for line in kept))
    delivery = config.DELIVERY_CHARGE if kept else 0.0

    coupon = lookup_coupon(coupon_code) if coupon_code else None
    discount = float(round_half_up(subtotal * coupon.discount / 100)) if coupon else 0.0

    return CartTotals(
        subtotal=subtotal,
        delivery_charge=delivery,
        discount=discount,
        coupon=coupon,
        lines=kept,
    )


def compute_final_amount(total_price: float, discount_amount: float | None) -> float:
    """Booking final amount: total minus discount, never below zero."""
    return max(0.0, round_money(total_price - (discount_amount or 0.0)))


def build_charges_breakdown(
    total_price: float,
    discount_amount: float = 0.0,
    supplied: dict[str, Any] | None = None,
) -> dict[str, float]:
    """Fill in the stored charges breakdown, keeping any caller-supplied values."""
    supplied = supplied or {}
    return {
        "base_price": float(supplied.get("base_price", total_price) or 0.0),
        "tax_amount": float(supplied.get("tax_amount", 0.0) or 0.0),
        "service_fee": float(supplied.get("service_fee", 0.0) or 0.0),
        "delivery_fee": float(supplied.get("delivery_fee", config.DELIVERY_CHARGE) or 0.0),
        "discount": float(supplied.get("discount", discount_amount) or 0.0),
    }
