"""
System fee calculation for completed transactions.

Fees are what the platform keeps from each transaction. Both calculators
accept loosely shaped input (values come straight from JSON columns) and
never raise: anything malformed contributes zero.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

logger = logging.getLogger(__name__)

CENTAVO = Decimal('0.01')

BASE_FEE = Decimal('5')
VAT_RATE = Decimal('0.12')
VAT_DIVISOR = Decimal('1.12')

# Prices used when an errand item does not carry its own price.
CATALOG_PRICES = {
    # Food Delivery: canteen
    'Toppings': Decimal('55'),
    'Biscuits': Decimal('10'),
    'Pansit Canton': Decimal('30'),
    'Waffles': Decimal('35'),
    'Pastel': Decimal('20'),
    'Rice Bowl': Decimal('60'),
    # Food Delivery: drinks
    'Real Leaf': Decimal('30'),
    'Water (500ml)': Decimal('25'),
    'Minute Maid': Decimal('30'),
    'Kopiko Lucky Day': Decimal('30'),
    # School Materials
    'Yellowpad': Decimal('10'),
    'Ballpen': Decimal('10'),
}

# category -> (base delivery fee, fee per additional item)
DELIVERY_FEES = {
    'Deliver Items': (Decimal('20'), Decimal('5')),
    'Food Delivery': (Decimal('15'), Decimal('5')),
    'School Materials': (Decimal('10'), Decimal('5')),
    'Printing': (Decimal('5'), Decimal('2')),
}
NO_DELIVERY_FEE = (Decimal('0'), Decimal('0'))


def to_decimal(value, default=Decimal('0')):
    """Coerce a JSON/DB value to ``Decimal``; return ``default`` when it cannot be."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not result.is_finite():
        return default
    return result


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENTAVO, rounding=ROUND_HALF_UP)


def _item_name(item):
    name = item.get('name')
    if name is None:
        return ''
    return str(name).strip()


def _items(raw_items):
    if not isinstance(raw_items, list):
        return []
    return [item for item in raw_items if isinstance(item, dict)]


def errand_subtotal(raw_items) -> Decimal:
    """Sum of unit price x quantity over items that have both a name and a quantity."""
    subtotal = Decimal('0')
    for item in _items(raw_items):
        name = _item_name(item)
        qty = to_decimal(item.get('qty'))
        if not name or not qty:
            continue
        if item.get('price') not in (None, ''):
            unit_price = to_decimal(item.get('price'))
        else:
            unit_price = CATALOG_PRICES.get(name, Decimal('0'))
        subtotal += unit_price * qty
    return subtotal


def errand_total_quantity(raw_items) -> Decimal:
    return sum(
        (to_decimal(item.get('qty')) for item in _items(raw_items) if _item_name(item)),
        Decimal('0'),
    )


def delivery_fee(category, total_quantity: Decimal) -> Decimal:
    base, additional = DELIVERY_FEES.get((category or '').strip(), NO_DELIVERY_FEE)
    extra_items = max(Decimal('0'), total_quantity - 1)
    return base + additional * extra_items


def calculate_errand_fee(items, category) -> Decimal:
    """
    System fee for an errand: ``5 + 12% x (items subtotal + delivery fee)``.

    >>> calculate_errand_fee([{'name': 'Waffles', 'qty': 1}, {'name': 'Biscuits', 'qty': 1, 'price': 15}], 'Food Delivery')
    Decimal('13.40')
    """
    try:
        subtotal = errand_subtotal(items)
        fee = delivery_fee(category, errand_total_quantity(items))
        return quantize_money(BASE_FEE + VAT_RATE * (subtotal + fee))
    except (InvalidOperation, ArithmeticError) as e:
        logger.warning(f"Errand fee calculation failed, using 0: {e}")
        return quantize_money(Decimal('0'))


def calculate_commission_fee(total) -> Decimal:
    """
    System fee for a commission invoiced at ``total``.

    The invoice total already includes the base fee and VAT, so the
    subtotal is recovered as ``(total - 5) / 1.12``.
    """
    try:
        total = to_decimal(total)
        if total <= BASE_FEE:
            return quantize_money(Decimal('0'))
        subtotal = (total - BASE_FEE) / VAT_DIVISOR
        if subtotal <= 0:
            return quantize_money(Decimal('0'))
        return quantize_money(BASE_FEE + VAT_RATE * subtotal)
    except (InvalidOperation, ArithmeticError) as e:
        logger.warning(f"Commission fee calculation failed, using 0: {e}")
        return quantize_money(Decimal('0'))
