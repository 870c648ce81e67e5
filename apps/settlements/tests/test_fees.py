from decimal import Decimal

from apps.settlements.services.fees import (
    calculate_commission_fee,
    calculate_errand_fee,
    delivery_fee,
    errand_subtotal,
    errand_total_quantity,
)


class TestCommissionFee:
    """Commission fee: 5 + 12% of (total - 5) / 1.12."""

    def test_invoice_of_117_gives_fee_of_17(self):
        assert calculate_commission_fee(Decimal('117')) == Decimal('17.00')

    def test_total_at_or_below_base_fee_is_free(self):
        assert calculate_commission_fee(Decimal('5')) == Decimal('0.00')
        assert calculate_commission_fee(Decimal('3.50')) == Decimal('0.00')
        assert calculate_commission_fee(Decimal('0')) == Decimal('0.00')

    def test_result_is_rounded_to_centavos(self):
        # (100 - 5) / 1.12 = 84.821...; 5 + 0.12 * 84.821... = 15.178...
        assert calculate_commission_fee(Decimal('100')) == Decimal('15.18')

    def test_malformed_total_gives_zero(self):
        assert calculate_commission_fee('not a number') == Decimal('0.00')
        assert calculate_commission_fee(None) == Decimal('0.00')

    def test_numeric_strings_are_accepted(self):
        assert calculate_commission_fee('117.00') == Decimal('17.00')


class TestErrandFee:
    """Errand fee: 5 + 12% of (items subtotal + delivery fee)."""

    def test_food_delivery_two_items_subtotal_50(self):
        items = [
            {'name': 'Waffles', 'qty': 1},
            {'name': 'Biscuits', 'qty': 1, 'price': 15},
        ]
        # delivery 15 + 5 = 20; 5 + 0.12 * 70 = 13.40
        assert calculate_errand_fee(items, 'Food Delivery') == Decimal('13.40')

    def test_catalog_price_used_when_item_has_no_price(self):
        assert errand_subtotal([{'name': 'Rice Bowl', 'qty': 2}]) == Decimal('120')

    def test_explicit_price_overrides_catalog(self):
        assert errand_subtotal([{'name': 'Rice Bowl', 'qty': 1, 'price': 75}]) == Decimal('75')

    def test_items_without_name_or_qty_are_ignored(self):
        items = [
            {'name': '', 'qty': 3, 'price': 10},
            {'name': 'Ballpen', 'qty': 0},
            {'name': 'Yellowpad'},
            {'name': 'Ballpen', 'qty': 2},
        ]
        assert errand_subtotal(items) == Decimal('20')

    def test_total_quantity_counts_named_items_only(self):
        items = [
            {'name': 'Ballpen', 'qty': 2},
            {'name': '  ', 'qty': 4},
            {'name': 'Yellowpad', 'qty': '3'},
        ]
        assert errand_total_quantity(items) == Decimal('5')

    def test_delivery_fee_per_category(self):
        assert delivery_fee('Deliver Items', Decimal('1')) == Decimal('20')
        assert delivery_fee('School Materials', Decimal('3')) == Decimal('20')
        assert delivery_fee('Printing', Decimal('3')) == Decimal('9')
        assert delivery_fee('Something Else', Decimal('4')) == Decimal('0')

    def test_delivery_fee_without_items_is_base_fee(self):
        assert delivery_fee('Food Delivery', Decimal('0')) == Decimal('15')

    def test_unknown_category_charges_only_on_items(self):
        items = [{'name': 'Thing', 'qty': 1, 'price': 100}]
        assert calculate_errand_fee(items, 'Laundry') == Decimal('17.00')

    def test_malformed_items_contribute_zero(self):
        assert calculate_errand_fee(None, None) == Decimal('5.00')
        assert calculate_errand_fee('garbage', 'Laundry') == Decimal('5.00')
        items = [{'name': 'Pastel', 'qty': 'two', 'price': 'abc'}, 'not a dict']
        assert calculate_errand_fee(items, 'Laundry') == Decimal('5.00')
