"""
Pricing service - totals for carts, part orders, table sessions and orders.

Pure computation, no database access. Every caller that needs a total goes
through compute_totals so the arithmetic lives in one place.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import List, Optional, Iterable

from tableorders.exceptions import InvalidInputError

CENT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')

DISCOUNT_PERCENT = 'PERCENT'
DISCOUNT_AMOUNT = 'AMOUNT'
DISCOUNT_TYPES = (DISCOUNT_PERCENT, DISCOUNT_AMOUNT)


def to_decimal(value, field_name: str) -> Decimal:
    """Convert user or database input to Decimal, rejecting garbage."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise InvalidInputError(field_name, f"'{field_name}' is required")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInputError(field_name, f"'{field_name}' must be a number")


def round_money(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Currency amount -> integer minor units (pence), rounding half-up."""
    return int((to_decimal(amount, 'amount') * HUNDRED).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Discount:
    """A percentage or flat-amount discount."""
    kind: str
    value: Decimal

    def __post_init__(self):
        if self.kind not in DISCOUNT_TYPES:
            raise InvalidInputError('discount_type', f"Discount type must be one of {', '.join(DISCOUNT_TYPES)}")
        value = to_decimal(self.value, 'discount_value')
        if value < 0:
            raise InvalidInputError('discount_value', 'Discount cannot be negative')
        # Same scale as the discount_value columns, so stored and computed totals agree
        value = round_money(value)
        if self.kind == DISCOUNT_PERCENT and value > HUNDRED:
            raise InvalidInputError('discount_value', 'Percentage discount cannot exceed 100')
        object.__setattr__(self, 'value', value)

    @classmethod
    def from_fields(cls, discount_type: Optional[str], discount_value) -> Optional['Discount']:
        """Build from the (type, value) column pair stored on lines and sessions."""
        if not discount_type:
            return None
        return cls(str(discount_type).upper(), discount_value if discount_value is not None else ZERO)

    def amount_on(self, base: Decimal) -> Decimal:
        """Unrounded discount amount on base; flat amounts are capped at base."""
        if self.kind == DISCOUNT_PERCENT:
            return base * (self.value / HUNDRED)
        return min(self.value, base)


@dataclass(frozen=True)
class LineInput:
    """One priced line: quantity x unit price, own tax rate, optional discount."""
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal = ZERO
    discount: Optional[Discount] = None
    ref: Optional[object] = None

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            raise InvalidInputError('quantity', 'Quantity must be a positive integer')
        price = to_decimal(self.unit_price, 'unit_price')
        if price < 0:
            raise InvalidInputError('unit_price', 'Unit price cannot be negative')
        rate = to_decimal(self.tax_rate if self.tax_rate is not None else ZERO, 'tax_rate')
        if rate < 0 or rate > HUNDRED:
            raise InvalidInputError('tax_rate', 'Tax rate must be between 0 and 100')
        object.__setattr__(self, 'unit_price', price)
        object.__setattr__(self, 'tax_rate', rate)


@dataclass(frozen=True)
class LineTotals:
    ref: Optional[object]
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    after_discount: Decimal
    tax: Decimal

    def to_dict(self):
        return {
            'ref': self.ref,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'tax_rate': str(self.tax_rate),
            'subtotal': str(self.subtotal),
            'discount_amount': str(self.discount_amount),
            'after_discount': str(self.after_discount),
            'tax': str(self.tax),
        }


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    item_discount_amount: Decimal
    after_item_discount: Decimal
    session_discount_amount: Decimal
    after_all_discounts: Decimal
    tax: Decimal
    total: Decimal
    lines: List[LineTotals] = field(default_factory=list)

    @property
    def discount_amount(self) -> Decimal:
        return self.item_discount_amount + self.session_discount_amount

    def to_dict(self, include_lines=True):
        rv = {
            'subtotal': str(self.subtotal),
            'item_discount_amount': str(self.item_discount_amount),
            'after_item_discount': str(self.after_item_discount),
            'session_discount_amount': str(self.session_discount_amount),
            'after_all_discounts': str(self.after_all_discounts),
            'tax': str(self.tax),
            'total': str(self.total),
        }
        if include_lines:
            rv['lines'] = [line.to_dict() for line in self.lines]
        return rv


def compute_totals(items: Iterable[LineInput], session_discount: Optional[Discount] = None) -> Totals:
    """
    Compute subtotal, discounts, tax and total.

    Tax is computed per line on the post-item-discount amount at that line's
    rate, then scaled by after_all_discounts / after_item_discount so the
    session discount is prorated across lines. Rounding happens only on the
    returned values; total is the sum of the rounded net amount and tax.
    """
    subtotal = ZERO
    item_discount = ZERO
    raw_tax = ZERO
    raw_lines = []

    for item in items:
        line_subtotal = item.unit_price * item.quantity
        line_discount = item.discount.amount_on(line_subtotal) if item.discount else ZERO
        line_after = line_subtotal - line_discount
        line_tax = line_after * (item.tax_rate / HUNDRED)

        subtotal += line_subtotal
        item_discount += line_discount
        raw_tax += line_tax
        raw_lines.append((item, line_subtotal, line_discount, line_after, line_tax))

    after_item_discount = subtotal - item_discount
    session_discount_amount = session_discount.amount_on(after_item_discount) if session_discount else ZERO
    after_all_discounts = after_item_discount - session_discount_amount

    if after_item_discount == 0:
        ratio = Decimal('1')
    else:
        ratio = after_all_discounts / after_item_discount
    tax = raw_tax * ratio

    lines = [
        LineTotals(
            ref=item.ref,
            quantity=item.quantity,
            unit_price=round_money(item.unit_price),
            tax_rate=item.tax_rate,
            subtotal=round_money(line_subtotal),
            discount_amount=round_money(line_discount),
            after_discount=round_money(line_after),
            tax=round_money(line_tax * ratio),
        )
        for item, line_subtotal, line_discount, line_after, line_tax in raw_lines
    ]

    after_all_rounded = round_money(after_all_discounts)
    tax_rounded = round_money(tax)
    return Totals(
        subtotal=round_money(subtotal),
        item_discount_amount=round_money(item_discount),
        after_item_discount=round_money(after_item_discount),
        session_discount_amount=round_money(session_discount_amount),
        after_all_discounts=after_all_rounded,
        tax=tax_rounded,
        total=after_all_rounded + tax_rounded,
        lines=lines,
    )


def line_input_from_item(item, ref=None) -> LineInput:
    """Build a LineInput from a stored line (PartOrderItem or OrderItem)."""
    return LineInput(
        quantity=int(item.quantity),
        unit_price=item.unit_price,
        tax_rate=item.tax_rate,
        discount=Discount.from_fields(getattr(item, 'discount_type', None), getattr(item, 'discount_value', None)),
        ref=ref if ref is not None else item.id,
    )
