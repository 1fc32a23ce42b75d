"""Quotation pricing.

Pure functions: no database, no clock. The same inputs always produce the
same Totals, so a quotation looks identical in preview, email, PDF and on
the public link.
"""
from collections import namedtuple
from decimal import Decimal

from app.services.exceptions import InvalidLineItem, InvalidAdjustment
from app.services.formatting import MONEY_SCALE, to_decimal, quantize, amount_in_words

HUNDRED = Decimal('100')

Totals = namedtuple('Totals', [
    'subtotal', 'discount_amount', 'tax_amount', 'charges', 'total',
    'amount_in_words', 'line_totals',
])

DiscountPolicy = namedtuple('DiscountPolicy', ['type', 'value'])
TaxPolicy = namedtuple('TaxPolicy', ['name', 'percentage'])

NO_DISCOUNT = DiscountPolicy('percentage', Decimal('0'))
NO_TAX = TaxPolicy('Tax', None)


def _field(item, name, default=None):
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def _number(item, name, line_number, required=False):
    raw = _field(item, name)
    if raw is None and required:
        raise InvalidLineItem(line_number, f'{name} is required')
    try:
        return to_decimal(raw)
    except ValueError:
        raise InvalidLineItem(line_number, f'{name} must be a number')


def validate_item(item, line_number):
    """Return (quantity, unit_price, discount_percent, tax_percent) as Decimals"""
    name = _field(item, 'name')
    if name is not None and not str(name).strip():
        raise InvalidLineItem(line_number, 'name is required')

    quantity = _number(item, 'quantity', line_number, required=True)
    unit_price = _number(item, 'unit_price', line_number, required=True)
    discount = _number(item, 'discount_percent', line_number)
    tax = _number(item, 'tax_percent', line_number)

    if quantity < 0:
        raise InvalidLineItem(line_number, 'quantity cannot be negative')
    if unit_price < 0:
        raise InvalidLineItem(line_number, 'unit price cannot be negative')
    if unit_price != unit_price.quantize(Decimal(1).scaleb(-MONEY_SCALE)):
        raise InvalidLineItem(line_number, f'unit price cannot have more than {MONEY_SCALE} decimal places')
    if not 0 <= discount <= HUNDRED:
        raise InvalidLineItem(line_number, 'discount must be between 0 and 100 percent')
    if not 0 <= tax <= HUNDRED:
        raise InvalidLineItem(line_number, 'tax must be between 0 and 100 percent')

    return quantity, unit_price, discount, tax


def line_total(item, currency, line_number=1):
    """quantity x unit price x (1 - discount%) x (1 + tax%), rounded once"""
    quantity, unit_price, discount, tax = validate_item(item, line_number)
    raw = quantity * unit_price * (1 - discount / HUNDRED) * (1 + tax / HUNDRED)
    return quantize(raw, currency)


def _discount_amount(subtotal, policy, currency):
    policy = policy or NO_DISCOUNT
    try:
        value = to_decimal(policy.value)
    except ValueError:
        raise InvalidAdjustment('Discount must be a number')
    if value < 0:
        raise InvalidAdjustment('Discount cannot be negative')

    if policy.type == 'fixed':
        if value > subtotal:
            raise InvalidAdjustment('Fixed discount cannot exceed the subtotal')
        return quantize(value, currency)
    if policy.type not in (None, 'percentage'):
        raise InvalidAdjustment(f'Unknown discount type: {policy.type}')
    if value > HUNDRED:
        raise InvalidAdjustment('Discount must be between 0 and 100 percent')
    return quantize(subtotal * value / HUNDRED, currency)


def _tax_amount(taxable, policy, currency):
    if policy is None or policy.percentage is None or policy.percentage == '':
        return quantize(0, currency)
    try:
        percentage = to_decimal(policy.percentage)
    except ValueError:
        raise InvalidAdjustment('Tax percentage must be a number')
    if not 0 <= percentage <= HUNDRED:
        raise InvalidAdjustment('Tax must be between 0 and 100 percent')
    return quantize(taxable * percentage / HUNDRED, currency)


def _charges(charges, currency):
    total = Decimal('0')
    for value in charges or ():
        try:
            amount = to_decimal(value)
        except ValueError:
            raise InvalidAdjustment('Charges must be numbers')
        if amount < 0:
            raise InvalidAdjustment('Charges cannot be negative')
        total += amount
    return quantize(total, currency)


def compute(items, discount_policy=None, tax_policy=None, charges=(), currency='USD'):
    """Derive all quotation totals from line items and stated rates.

    Each component is rounded to currency precision before the grand total
    is summed, so total == subtotal - discount + tax + charges holds exactly.
    """
    line_totals = tuple(
        line_total(item, currency, line_number)
        for line_number, item in enumerate(items or (), start=1)
    )
    subtotal = quantize(sum(line_totals, Decimal('0')), currency)
    discount = _discount_amount(subtotal, discount_policy, currency)
    tax = _tax_amount(subtotal - discount, tax_policy, currency)
    extra = _charges(charges, currency)
    total = subtotal - discount + tax + extra

    return Totals(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        charges=extra,
        total=total,
        amount_in_words=amount_in_words(total, currency),
        line_totals=line_totals,
    )


def compute_for_quotation(quotation):
    """Run compute() over a Quotation model (or any object with the same fields)"""
    return compute(
        quotation.items,
        DiscountPolicy(quotation.discount_type or 'percentage', quotation.discount_value or 0),
        TaxPolicy(quotation.tax_name or 'Tax', quotation.tax_percentage),
        (quotation.shipping_charges or 0, quotation.other_charges or 0),
        quotation.currency,
    )


def effective_total(quotation, totals):
    """The total a document shows: a flagged manual override, else the computed one"""
    if quotation.total_is_manual_override and quotation.manual_total is not None:
        return quantize(quotation.manual_total, quotation.currency)
    return totals.total


def apply_totals(quotation, totals):
    """Write derived totals back onto a quotation and its items"""
    for item, total in zip(quotation.items, totals.line_totals):
        item.total = total

    quotation.subtotal = totals.subtotal
    quotation.discount_amount = totals.discount_amount
    quotation.tax_amount = totals.tax_amount
    quotation.charges = totals.charges

    total = effective_total(quotation, totals)
    quotation.total = total
    quotation.amount_in_words = amount_in_words(total, quotation.currency)
    return quotation
