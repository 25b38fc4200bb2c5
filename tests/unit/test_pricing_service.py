"""
Unit tests for the pricing & tax calculator.
"""

import random
import pytest
from collections import namedtuple
from decimal import Decimal

from pharmabill.exceptions import ValidationError
from pharmabill.services.pricing_service import compute_totals, money, validate_discount_percent

Line = namedtuple('Line', 'line_total quantity')


class TestComputeTotals:
    """Tests for compute_totals."""

    def test_bill_discount_and_flat_gst(self):
        """300 with 10% discount -> 270 taxable, 32.40 GST, 302.40 total."""
        totals = compute_totals([Line(Decimal('300'), 3)], Decimal('10'))

        assert totals.subtotal == Decimal('300')
        assert totals.discount_amount == Decimal('30')
        assert totals.taxable_amount == Decimal('270')
        assert totals.tax_amount == Decimal('32.4')
        assert totals.total == Decimal('302.4')

    def test_no_items(self):
        totals = compute_totals([], 0)

        assert totals.subtotal == 0
        assert totals.total == 0
        assert totals.item_count == 0

    def test_per_line_gst_rates_are_not_summed(self):
        """Tax is the flat bill rate regardless of the lines' own rates."""
        lines = [Line(Decimal('100'), 1), Line(Decimal('50'), 2)]
        totals = compute_totals(lines, 0)

        assert totals.tax_amount == Decimal('18')
        assert totals.cgst_amount == Decimal('9')
        assert totals.sgst_amount == Decimal('9')

    def test_total_reconciles(self):
        lines = [Line(Decimal('148.20') * 3, 3), Line(Decimal('90.85'), 1), Line(Decimal('73.65') * 7, 7)]
        totals = compute_totals(lines, Decimal('7.5'))

        assert abs(totals.total - (totals.subtotal - totals.discount_amount + totals.tax_amount)) < Decimal('1e-6')
        assert totals.total_quantity == 11
        assert totals.item_count == 3

    def test_rounding_only_at_presentation(self):
        """Unrounded internally; rounded() quantizes to 2 places."""
        totals = compute_totals([Line(Decimal('296.40'), 2)], 0)

        assert totals.tax_amount == Decimal('35.568')
        rounded = totals.rounded()
        assert rounded.tax_amount == Decimal('35.57')
        assert rounded.total == Decimal('331.97')

    def test_custom_gst_rate(self):
        totals = compute_totals([Line(Decimal('200'), 1)], 0, gst_rate=5)
        assert totals.total == Decimal('210')

    @pytest.mark.parametrize('discount', [-1, Decimal('100.01'), 'abc'])
    def test_invalid_discount(self, discount):
        with pytest.raises(ValidationError):
            compute_totals([Line(Decimal('10'), 1)], discount)

    def test_full_discount(self):
        totals = compute_totals([Line(Decimal('10'), 1)], 100)
        assert totals.total == 0


def test_money_rounds_half_up():
    assert money(Decimal('2.345')) == Decimal('2.35')
    assert money('0.005') == Decimal('0.01')


class TestRoundedTotals:
    """Presented totals must add up to the paisa."""

    def test_discount_rounding_carries_into_total(self):
        """100.10 with 5% -> 5.01 discount, 11.41 GST, 106.50 total."""
        rounded = compute_totals([Line(Decimal('100.10'), 1)], 5).rounded()

        assert rounded.discount_amount == Decimal('5.01')
        assert rounded.taxable_amount == Decimal('95.09')
        assert rounded.tax_amount == Decimal('11.41')
        assert rounded.total == Decimal('106.50')

    @pytest.mark.parametrize('seed', range(20))
    def test_rounded_parts_reconcile(self, seed):
        rng = random.Random(seed)
        lines = []
        for _ in range(rng.randint(1, 6)):
            qty = rng.randint(1, 12)
            lines.append(Line(Decimal(rng.randint(1, 99999)) / 100 * qty, qty))
        discount = Decimal(rng.randint(0, 10000)) / 100

        rounded = compute_totals(lines, discount).rounded()

        assert rounded.total == rounded.subtotal - rounded.discount_amount + rounded.tax_amount
        for amount in (rounded.subtotal, rounded.discount_amount, rounded.tax_amount, rounded.total):
            assert amount == money(amount)


@pytest.mark.parametrize('value,expected', [
    ('33.333', Decimal('33.33')),
    (Decimal('12.345'), Decimal('12.35')),
    (10, Decimal('10.00')),
])
def test_discount_percent_kept_to_two_places(value, expected):
    assert validate_discount_percent(value) == expected
