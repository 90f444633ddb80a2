"""
Unit tests for the pricing engine.
"""

import pytest
from decimal import Decimal

from tableorders.exceptions import InvalidInputError
from tableorders.services.pricing_service import (
    Discount, LineInput, compute_totals, round_money, to_minor_units
)

D = Decimal


class TestScenarios:
    """Reference scenarios."""

    def test_single_line_no_discount(self):
        """2 x 10.00 at 20% tax -> 20.00 + 4.00 = 24.00."""
        totals = compute_totals([LineInput(quantity=2, unit_price=D('10.00'), tax_rate=D('20'))])

        assert totals.subtotal == D('20.00')
        assert totals.item_discount_amount == D('0.00')
        assert totals.tax == D('4.00')
        assert totals.total == D('24.00')

    def test_session_percent_discount_scales_tax(self):
        """A 10% session discount scales tax by 18/20."""
        totals = compute_totals(
            [LineInput(quantity=2, unit_price=D('10.00'), tax_rate=D('20'))],
            Discount('PERCENT', D('10')),
        )

        assert totals.after_item_discount == D('20.00')
        assert totals.session_discount_amount == D('2.00')
        assert totals.after_all_discounts == D('18.00')
        assert totals.tax == D('3.60')
        assert totals.total == D('21.60')

    def test_item_discount_on_one_line(self):
        """50% off an untaxed line; tax comes only from the second line."""
        totals = compute_totals([
            LineInput(quantity=1, unit_price=D('10'), tax_rate=D('0'), discount=Discount('PERCENT', D('50'))),
            LineInput(quantity=2, unit_price=D('5'), tax_rate=D('10')),
        ])

        assert totals.subtotal == D('20.00')
        assert totals.item_discount_amount == D('5.00')
        assert totals.after_item_discount == D('15.00')
        assert totals.session_discount_amount == D('0.00')
        assert totals.tax == D('1.00')
        assert totals.total == D('16.00')


class TestEdgeCases:
    """Zero items, caps and rejected discounts."""

    def test_zero_items_is_all_zero(self):
        totals = compute_totals([])
        assert totals.subtotal == D('0.00')
        assert totals.after_all_discounts == D('0.00')
        assert totals.tax == D('0.00')
        assert totals.total == D('0.00')
        assert totals.lines == []

    def test_zero_items_with_session_discount(self):
        """No division by zero when nothing is left after item discounts."""
        totals = compute_totals([], Discount('PERCENT', D('10')))
        assert totals.total == D('0.00')

    def test_flat_item_discount_capped_at_line_subtotal(self):
        totals = compute_totals([
            LineInput(quantity=1, unit_price=D('5.00'), tax_rate=D('20'), discount=Discount('AMOUNT', D('8'))),
        ])
        assert totals.item_discount_amount == D('5.00')
        assert totals.after_item_discount == D('0.00')
        assert totals.tax == D('0.00')
        assert totals.total == D('0.00')

    def test_flat_session_discount_capped(self):
        totals = compute_totals(
            [LineInput(quantity=2, unit_price=D('10.00'), tax_rate=D('20'))],
            Discount('AMOUNT', D('50')),
        )
        assert totals.session_discount_amount == D('20.00')
        assert totals.after_all_discounts == D('0.00')
        assert totals.tax == D('0.00')
        assert totals.total == D('0.00')

    def test_negative_discount_rejected(self):
        with pytest.raises(InvalidInputError) as exc:
            Discount('PERCENT', D('-5'))
        assert exc.value.field == 'discount_value'

    def test_negative_flat_discount_rejected(self):
        with pytest.raises(InvalidInputError):
            Discount('AMOUNT', D('-0.01'))

    def test_percent_over_hundred_rejected(self):
        with pytest.raises(InvalidInputError):
            Discount('PERCENT', D('100.01'))

    def test_unknown_discount_type_rejected(self):
        with pytest.raises(InvalidInputError) as exc:
            Discount('BOGOF', D('1'))
        assert exc.value.field == 'discount_type'

    def test_discount_value_kept_to_two_places(self):
        assert Discount('PERCENT', '33.335').value == D('33.34')
        assert Discount('AMOUNT', D('1.004')).value == D('1.00')

    def test_from_fields(self):
        assert Discount.from_fields(None, D('5')) is None
        assert Discount.from_fields('', D('5')) is None
        discount = Discount.from_fields('percent', '12.5')
        assert discount.kind == 'PERCENT'
        assert discount.value == D('12.5')

    @pytest.mark.parametrize('quantity', [0, -1, True, 1.5])
    def test_invalid_quantity_rejected(self, quantity):
        with pytest.raises(InvalidInputError) as exc:
            LineInput(quantity=quantity, unit_price=D('1'))
        assert exc.value.field == 'quantity'

    def test_negative_price_rejected(self):
        with pytest.raises(InvalidInputError):
            LineInput(quantity=1, unit_price=D('-1'))

    def test_tax_rate_out_of_range_rejected(self):
        with pytest.raises(InvalidInputError):
            LineInput(quantity=1, unit_price=D('1'), tax_rate=D('101'))

    def test_non_numeric_price_rejected(self):
        with pytest.raises(InvalidInputError):
            LineInput(quantity=1, unit_price='ten')


class TestRounding:
    """Round half-up, only on outputs."""

    def test_round_half_up(self):
        assert round_money(D('0.005')) == D('0.01')
        assert round_money(D('2.675')) == D('2.68')

    def test_tax_rounded_after_summing(self):
        """Three lines with 0.005 tax each: 0.015 -> 0.02, not 3 x 0.01."""
        lines = [LineInput(quantity=1, unit_price=D('0.01'), tax_rate=D('50')) for _ in range(3)]
        totals = compute_totals(lines)
        assert totals.tax == D('0.02')
        assert totals.total == D('0.05')

    def test_minor_units(self):
        assert to_minor_units(D('21.60')) == 2160
        assert to_minor_units(D('0.005')) == 1


class TestProperties:
    """Invariants over a spread of inputs."""

    CASES = [
        ([LineInput(1, D('3.33'), D('17.5'))], None),
        ([LineInput(3, D('3.33'), D('20'), Discount('PERCENT', D('33')))], Discount('PERCENT', D('12.5'))),
        ([LineInput(2, D('7.99'), D('5')), LineInput(1, D('0.99'), D('0'))], Discount('AMOUNT', D('4.44'))),
        ([LineInput(7, D('1.07'), D('20'), Discount('AMOUNT', D('0.50')))], Discount('AMOUNT', D('100'))),
        ([LineInput(1, D('0'), D('20'))], Discount('PERCENT', D('100'))),
    ]

    @pytest.mark.parametrize('items, session_discount', CASES)
    def test_outputs_non_negative(self, items, session_discount):
        totals = compute_totals(items, session_discount)
        for value in (totals.subtotal, totals.item_discount_amount, totals.after_item_discount,
                      totals.session_discount_amount, totals.after_all_discounts, totals.tax, totals.total):
            assert value >= 0

    @pytest.mark.parametrize('items, session_discount', CASES)
    def test_total_is_net_plus_tax(self, items, session_discount):
        totals = compute_totals(items, session_discount)
        assert totals.total == totals.after_all_discounts + totals.tax
        assert totals.total == totals.total.quantize(D('0.01'))

    @pytest.mark.parametrize('items, session_discount', CASES)
    def test_deterministic(self, items, session_discount):
        assert compute_totals(items, session_discount) == compute_totals(items, session_discount)

    def test_to_dict_uses_strings(self):
        data = compute_totals([LineInput(2, D('10.00'), D('20'), ref=7)]).to_dict()
        assert data['total'] == '24.00'
        assert data['lines'][0]['ref'] == 7
        assert data['lines'][0]['tax'] == '4.00'
