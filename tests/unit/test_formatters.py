"""
Unit tests for formatting helpers.
"""

from datetime import date, datetime
from decimal import Decimal

from tableorders.utils.formatters import money_gbp, percent, date_uk, datetime_uk


class TestMoneyGbp:

    def test_thousands_and_decimals(self):
        assert money_gbp(1500) == '£1,500.00'
        assert money_gbp('21.6') == '£21.60'
        assert money_gbp(Decimal('1234567.891')) == '£1,234,567.89'

    def test_negative(self):
        assert money_gbp(Decimal('-2')) == '-£2.00'

    def test_invalid(self):
        assert money_gbp(None) == '-'
        assert money_gbp('') == '-'
        assert money_gbp('abc') == '-'

    def test_custom_symbol(self):
        assert money_gbp(3, symbol='€') == '€3.00'


class TestPercent:

    def test_strips_trailing_zeros(self):
        assert percent(Decimal('20.00')) == '20%'
        assert percent(Decimal('12.50')) == '12.5%'
        assert percent(0) == '0%'

    def test_invalid(self):
        assert percent(None) == '-'


class TestDates:

    def test_date_uk(self):
        assert date_uk(date(2024, 3, 9)) == '09/03/2024'
        assert date_uk(None) == '-'

    def test_datetime_uk(self):
        assert datetime_uk(datetime(2024, 3, 9, 18, 5)) == '09/03/2024 18:05'
