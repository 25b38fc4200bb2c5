"""
Pricing & tax calculator.

Pure functions: given line items and a bill-level discount percent, produce
the sale totals. GST is a flat rate on the post-discount amount; the
per-line CGST/SGST rates are display fields and are not summed here.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

from pharmabill.exceptions import ValidationError

DEFAULT_GST_RATE = Decimal('12')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Number) -> Decimal:
    """Round a monetary amount to 2 places for presentation/persistence."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Totals:
    """Sale totals, unrounded. Call rounded() for the presented values."""

    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    gst_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    item_count: int = 0
    total_quantity: int = 0

    @property
    def cgst_amount(self) -> Decimal:
        return self.tax_amount / 2

    @property
    def sgst_amount(self) -> Decimal:
        return self.tax_amount / 2

    def rounded(self) -> 'Totals':
        """
        Presented values, rounded step by step so they add up:
        total == subtotal - discount_amount + tax_amount holds exactly.
        """
        subtotal = money(self.subtotal)
        discount_amount = money(self.discount_amount)
        taxable_amount = subtotal - discount_amount
        tax_amount = money(taxable_amount * self.gst_rate / HUNDRED)
        return Totals(
            subtotal=subtotal,
            discount_percent=self.discount_percent,
            discount_amount=discount_amount,
            taxable_amount=taxable_amount,
            gst_rate=self.gst_rate,
            tax_amount=tax_amount,
            total=taxable_amount + tax_amount,
            item_count=self.item_count,
            total_quantity=self.total_quantity,
        )


def validate_discount_percent(value: Number) -> Decimal:
    """Parse a bill discount percent; stored with 2 decimals like the column."""
    try:
        pct = to_decimal(value if value is not None else 0)
    except ArithmeticError:
        raise ValidationError('Discount must be a number between 0 and 100')
    if not pct.is_finite() or pct < 0 or pct > HUNDRED:
        raise ValidationError('Discount must be between 0 and 100')
    return pct.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(lines: Iterable, bill_discount_percent: Number = 0,
                   gst_rate: Number = DEFAULT_GST_RATE) -> Totals:
    """
    Compute subtotal, bill discount, GST and grand total.

    Args:
        lines: objects exposing line_total and quantity (draft or sale lines)
        bill_discount_percent: 0-100, applied to the whole bill
        gst_rate: flat GST percent applied to the discounted amount

    Raises:
        ValidationError: discount outside 0-100
    """
    pct = validate_discount_percent(bill_discount_percent)
    rate = to_decimal(gst_rate)

    subtotal = Decimal('0')
    item_count = 0
    total_quantity = 0
    for line in lines:
        subtotal += to_decimal(line.line_total)
        item_count += 1
        total_quantity += int(line.quantity)

    discount_amount = subtotal * pct / HUNDRED
    taxable_amount = subtotal - discount_amount
    tax_amount = taxable_amount * rate / HUNDRED

    return Totals(
        subtotal=subtotal,
        discount_percent=pct,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        gst_rate=rate,
        tax_amount=tax_amount,
        total=taxable_amount + tax_amount,
        item_count=item_count,
        total_quantity=total_quantity,
    )
