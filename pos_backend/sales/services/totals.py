# sales/services/totals.py

"""
TOTAL CALCULATOR (PURE DOMAIN SERVICE)

Answers one question: "what does the customer owe for this draft?"

Rules:
- subtotal = sum(line.total_price)
- A manual tax amount always wins.
- Auto-tax fires only when manual tax is exactly 0 and a default rate is set:
    exclusive: (subtotal - discount + shipping) * rate / 100
    inclusive: (subtotal - discount + shipping) * rate / (100 + rate)   (display only)
  Auto-tax is rounded half-up to 2dp.
- total = base                  (inclusive, tax already embedded)
  total = base + tax            (exclusive)
- Discount may exceed subtotal; the total is NOT clamped.
- An empty draft totals 0; rejecting it is the finalize step's job.

No database access, no settings access: configuration comes in as arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional

from business.services.config import TAX_EXCLUSIVE, TAX_INCLUSIVE, TAX_MODES, CheckoutConfig
from sales.services.exceptions import InvalidLineItem

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWOPLACES = Decimal("0.01")


def to_decimal(value, *, field: str = "amount") -> Decimal:
    """Parse user input into a Decimal without rounding it."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"{field} must be a number") from exc


def quantize_money(value) -> Decimal:
    return to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    product_id: str
    quantity: int
    unit_price: Decimal
    variant_id: Optional[str] = None
    product_name: str = ""

    def __post_init__(self):
        if not str(self.product_id or "").strip():
            raise InvalidLineItem("product_id is required")

        qty = self.quantity
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise InvalidLineItem(f"Quantity for {self.label} must be a whole number.")
        if qty <= 0:
            raise InvalidLineItem(f"Quantity for {self.label} must be at least 1.")

        try:
            price = to_decimal(self.unit_price, field="unit_price")
        except ValueError as exc:
            raise InvalidLineItem(f"Invalid unit price for {self.label}.") from exc
        if price < ZERO:
            raise InvalidLineItem(f"Unit price for {self.label} cannot be negative.")
        object.__setattr__(self, "unit_price", price)

    @property
    def label(self) -> str:
        return self.product_name or str(self.product_id)

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class TotalBreakdown:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    tax_mode: str
    auto_tax: bool = False

    @property
    def applied_tax(self) -> Decimal:
        return self.tax

    def as_dict(self) -> dict:
        return {
            "subtotal": str(quantize_money(self.subtotal)),
            "discount": str(quantize_money(self.discount)),
            "tax": str(quantize_money(self.tax)),
            "shipping": str(quantize_money(self.shipping)),
            "total": str(quantize_money(self.total)),
            "tax_mode": self.tax_mode,
            "auto_tax": self.auto_tax,
        }


def _non_negative(value, field: str) -> Decimal:
    amount = to_decimal(value, field=field)
    if amount < ZERO:
        raise ValueError(f"{field} cannot be negative")
    return amount


def calculate_subtotal(line_items: Iterable[LineItem]) -> Decimal:
    return sum((item.total_price for item in line_items), ZERO)


def compute_total(
    line_items: Iterable[LineItem],
    *,
    discount=ZERO,
    tax=ZERO,
    shipping=ZERO,
    tax_mode: str = TAX_EXCLUSIVE,
    default_rate=None,
) -> TotalBreakdown:
    if tax_mode not in TAX_MODES:
        raise ValueError(f"Unknown tax mode: {tax_mode}")

    discount = _non_negative(discount, "discount")
    manual_tax = _non_negative(tax, "tax")
    shipping = _non_negative(shipping, "shipping")
    rate = _non_negative(default_rate, "default_rate")

    subtotal = calculate_subtotal(line_items)
    base = subtotal - discount + shipping

    applied_tax = manual_tax
    auto_tax = False
    if manual_tax == ZERO and rate > ZERO:
        if tax_mode == TAX_INCLUSIVE:
            applied_tax = base * rate / (HUNDRED + rate)
        else:
            applied_tax = base * rate / HUNDRED
        applied_tax = quantize_money(applied_tax)
        auto_tax = True

    if tax_mode == TAX_INCLUSIVE:
        total = base
    else:
        total = base + applied_tax

    return TotalBreakdown(
        subtotal=subtotal,
        discount=discount,
        tax=applied_tax,
        shipping=shipping,
        total=total,
        tax_mode=tax_mode,
        auto_tax=auto_tax,
    )


def compute_total_for_config(
    line_items: Iterable[LineItem],
    config: CheckoutConfig,
    *,
    discount=ZERO,
    tax=ZERO,
    shipping=ZERO,
) -> TotalBreakdown:
    return compute_total(
        line_items,
        discount=discount,
        tax=tax,
        shipping=shipping,
        tax_mode=config.tax_mode,
        default_rate=config.default_tax_rate,
    )
