from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.services.exceptions import InvalidAdjustment, InvalidLineItem
from app.services.pricing import (
    DiscountPolicy, TaxPolicy, apply_totals, compute, effective_total, line_total,
)

SWITCH = {'name': 'Switch', 'quantity': 2, 'unit_price': 100, 'discount_percent': 10, 'tax_percent': 18}


def test_line_total_rounds_once():
    """2 x 100 x 0.9 x 1.18 = 212.40"""
    assert line_total(SWITCH, 'USD') == Decimal('212.40')


def test_line_total_without_percentages():
    item = {'quantity': '3', 'unit_price': '19.99'}
    assert line_total(item, 'USD') == Decimal('59.97')


def test_line_total_uses_currency_precision():
    item = {'quantity': 1, 'unit_price': '1234.5'}
    assert line_total(item, 'JPY') == Decimal('1235')
    assert line_total(item, 'KWD') == Decimal('1234.500')


def test_empty_items_give_zero_totals():
    totals = compute([], currency='USD')
    assert totals.subtotal == Decimal('0.00')
    assert totals.total == Decimal('0.00')
    assert totals.line_totals == ()
    assert totals.amount_in_words == 'Zero Dollars Only'


def test_total_identity_holds():
    items = [
        SWITCH,
        {'name': 'Cable', 'quantity': '7', 'unit_price': '3.33', 'tax_percent': '5'},
        {'name': 'Labour', 'quantity': '1.5', 'unit_price': '80', 'discount_percent': '12.5'},
    ]
    totals = compute(
        items,
        DiscountPolicy('percentage', '7.5'),
        TaxPolicy('VAT', '20'),
        ('15.00', '4.99'),
        'USD',
    )
    assert totals.total == totals.subtotal - totals.discount_amount + totals.tax_amount + totals.charges
    assert totals.charges == Decimal('19.99')
    assert totals.subtotal == sum(totals.line_totals)


def test_tax_applies_after_discount():
    items = [{'name': 'Service', 'quantity': 1, 'unit_price': 1000}]
    totals = compute(items, DiscountPolicy('fixed', 100), TaxPolicy('GST', 10), (), 'INR')
    assert totals.discount_amount == Decimal('100.00')
    assert totals.tax_amount == Decimal('90.00')
    assert totals.total == Decimal('990.00')


def test_compute_is_deterministic():
    args = ([SWITCH, SWITCH], DiscountPolicy('percentage', 3), TaxPolicy('Tax', 8.25), (10,), 'USD')
    assert compute(*args) == compute(*args)


def test_invalid_item_reports_line_number():
    items = [SWITCH, {'name': 'Broken', 'quantity': -1, 'unit_price': 10}]
    with pytest.raises(InvalidLineItem) as exc:
        compute(items)
    assert exc.value.line_number == 2
    assert exc.value.status_code == 400


@pytest.mark.parametrize('item', [
    {'name': 'x', 'quantity': 'two', 'unit_price': 10},
    {'name': 'x', 'quantity': 1, 'unit_price': -5},
    {'name': 'x', 'quantity': 1, 'unit_price': 5, 'discount_percent': 101},
    {'name': 'x', 'quantity': 1, 'unit_price': 5, 'tax_percent': -1},
    {'name': 'x', 'quantity': 1, 'unit_price': '0.1255'},
    {'name': 'x', 'unit_price': 5},
])
def test_invalid_items_are_rejected(item):
    with pytest.raises(InvalidLineItem):
        compute([item])


def test_fixed_discount_cannot_exceed_subtotal():
    with pytest.raises(InvalidAdjustment):
        compute([{'name': 'x', 'quantity': 1, 'unit_price': 50}], DiscountPolicy('fixed', 60))


def test_percentage_discount_must_be_in_range():
    with pytest.raises(InvalidAdjustment):
        compute([{'name': 'x', 'quantity': 1, 'unit_price': 50}], DiscountPolicy('percentage', 150))


def test_negative_charges_are_rejected():
    with pytest.raises(InvalidAdjustment):
        compute([{'name': 'x', 'quantity': 1, 'unit_price': 50}], charges=(-1,))


def test_amount_in_words_for_rupees():
    totals = compute([SWITCH], currency='INR')
    assert totals.amount_in_words == 'Two Hundred Twelve Rupees and Forty Paise Only'


def _quotation(**fields):
    item = SimpleNamespace(**SWITCH)
    defaults = dict(
        items=[item], discount_type='percentage', discount_value=0, tax_name='Tax', tax_percentage=None,
        shipping_charges=0, other_charges=0, currency='USD',
        total_is_manual_override=False, manual_total=None,
    )
    defaults.update(fields)
    return SimpleNamespace(**defaults)


def test_apply_totals_writes_derived_fields():
    quotation = _quotation()
    apply_totals(quotation, compute(quotation.items, currency='USD'))
    assert quotation.items[0].total == Decimal('212.40')
    assert quotation.subtotal == Decimal('212.40')
    assert quotation.total == Decimal('212.40')
    assert quotation.amount_in_words == 'Two Hundred Twelve Dollars and Forty Cents Only'


def test_manual_override_is_used_only_when_flagged():
    totals = compute([SWITCH], currency='USD')

    unflagged = _quotation(manual_total=Decimal('200'))
    assert effective_total(unflagged, totals) == Decimal('212.40')

    flagged = _quotation(total_is_manual_override=True, manual_total=Decimal('200'))
    apply_totals(flagged, totals)
    assert flagged.total == Decimal('200.00')
    assert flagged.subtotal == Decimal('212.40')
