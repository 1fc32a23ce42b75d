"""Money, date and percentage formatting for quotation documents.

Formatting is keyed by currency code through a fixed table, never by the
server locale, so the same quotation renders byte-identically everywhere.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

EM_DASH = '—'

MONTHS = (
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
)

# symbol, fraction digits, group sep, decimal sep, grouping, symbol position,
# (unit singular, unit plural), (minor singular, minor plural)
CURRENCY_FORMATS = {
    'INR': ('₹', 2, ',', '.', 'indian', 'before', ('Rupee', 'Rupees'), ('Paisa', 'Paise')),
    'USD': ('$', 2, ',', '.', 'standard', 'before', ('Dollar', 'Dollars'), ('Cent', 'Cents')),
    'EUR': ('€', 2, '.', ',', 'standard', 'after', ('Euro', 'Euros'), ('Cent', 'Cents')),
    'GBP': ('£', 2, ',', '.', 'standard', 'before', ('Pound', 'Pounds'), ('Penny', 'Pence')),
    'AUD': ('A$', 2, ',', '.', 'standard', 'before', ('Dollar', 'Dollars'), ('Cent', 'Cents')),
    'CAD': ('CA$', 2, ',', '.', 'standard', 'before', ('Dollar', 'Dollars'), ('Cent', 'Cents')),
    'SGD': ('S$', 2, ',', '.', 'standard', 'before', ('Dollar', 'Dollars'), ('Cent', 'Cents')),
    'AED': ('AED ', 2, ',', '.', 'standard', 'before', ('Dirham', 'Dirhams'), ('Fils', 'Fils')),
    'SAR': ('SAR ', 2, ',', '.', 'standard', 'before', ('Riyal', 'Riyals'), ('Halala', 'Halalas')),
    'JPY': ('¥', 0, ',', '.', 'standard', 'before', ('Yen', 'Yen'), ('', '')),
    'KWD': ('KWD ', 3, ',', '.', 'standard', 'before', ('Dinar', 'Dinars'), ('Fils', 'Fils')),
}

# Scale of the stored money columns; covers every currency above
MONEY_SCALE = max(fmt[1] for fmt in CURRENCY_FORMATS.values())


def currency_format(currency):
    code = (currency or 'USD').upper()
    if code in CURRENCY_FORMATS:
        return CURRENCY_FORMATS[code]
    return (f'{code} ', 2, ',', '.', 'standard', 'before', (code, code), ('', ''))


def fraction_digits(currency):
    return currency_format(currency)[1]


def to_decimal(value):
    """Coerce a number-like value to Decimal. Raises ValueError on garbage."""
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, bool):
        raise ValueError('boolean is not a number')
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f'{value!r} is not a number')
    if not result.is_finite():
        raise ValueError(f'{value!r} is not a finite number')
    return result


def quantize(amount, currency):
    """Round once to the currency's fraction digits (half up)"""
    exponent = Decimal(1).scaleb(-fraction_digits(currency))
    return to_decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP)


def _group(digits, separator, grouping):
    if grouping == 'indian' and len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        return separator.join(groups + [tail])

    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return separator.join(groups)


def format_currency(amount, currency):
    """Format an amount, e.g. 1234567.5 INR -> '₹12,34,567.50'"""
    if amount is None:
        return ''
    symbol, digits, group_sep, decimal_sep, grouping, position = currency_format(currency)[:6]
    value = quantize(amount, currency)
    sign = '-' if value < 0 else ''
    whole, _, fraction = f'{abs(value):f}'.partition('.')

    number = _group(whole, group_sep, grouping)
    if digits:
        number = f'{number}{decimal_sep}{fraction}'

    if position == 'after':
        return f'{sign}{number} {symbol}'
    return f'{sign}{symbol}{number}'


def format_date(value):
    """Fixed long form, e.g. '19 October 2026'"""
    if not value:
        return ''
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return f'{value.day} {MONTHS[value.month - 1]} {value.year}'


def format_percent(value):
    """Unset percentages render as an em-dash, zero renders as '0%'"""
    if value is None or value == '':
        return EM_DASH
    number = to_decimal(value).normalize()
    return f'{number:f}%'


def format_quantity(value):
    number = to_decimal(value).normalize()
    return f'{number:f}'


# Amount in words

_ONES = (
    'Zero', 'One', 'Two', 'Three', 'Four', 'Five', 'Six', 'Seven', 'Eight', 'Nine',
    'Ten', 'Eleven', 'Twelve', 'Thirteen', 'Fourteen', 'Fifteen', 'Sixteen',
    'Seventeen', 'Eighteen', 'Nineteen',
)
_TENS = ('', '', 'Twenty', 'Thirty', 'Forty', 'Fifty', 'Sixty', 'Seventy', 'Eighty', 'Ninety')

_INTERNATIONAL_SCALES = (
    (10 ** 12, 'Trillion'),
    (10 ** 9, 'Billion'),
    (10 ** 6, 'Million'),
    (10 ** 3, 'Thousand'),
)
_INDIAN_SCALES = (
    (10 ** 7, 'Crore'),
    (10 ** 5, 'Lakh'),
    (10 ** 3, 'Thousand'),
)


def _below_thousand(n):
    words = []
    if n >= 100:
        words.append(f'{_ONES[n // 100]} Hundred')
        n %= 100
    if n >= 20:
        words.append(_TENS[n // 10] if n % 10 == 0 else f'{_TENS[n // 10]} {_ONES[n % 10]}')
    elif n > 0:
        words.append(_ONES[n])
    return ' '.join(words)


def number_to_words(n, grouping='standard'):
    if n == 0:
        return _ONES[0]
    scales = _INDIAN_SCALES if grouping == 'indian' else _INTERNATIONAL_SCALES

    words = []
    for size, name in scales:
        if n >= size:
            count, n = divmod(n, size)
            words.append(f'{number_to_words(count, grouping)} {name}')
    if n:
        words.append(_below_thousand(n))
    return ' '.join(words)


def amount_in_words(amount, currency):
    """e.g. 212.40 INR -> 'Two Hundred Twelve Rupees and Forty Paise Only'"""
    fmt = currency_format(currency)
    digits, grouping, unit_names, minor_names = fmt[1], fmt[4], fmt[6], fmt[7]

    value = quantize(amount, currency)
    prefix = 'Minus ' if value < 0 else ''
    value = abs(value)

    whole = int(value)
    minor = int((value - whole).scaleb(digits)) if digits else 0

    text = f'{number_to_words(whole, grouping)} {unit_names[0 if whole == 1 else 1]}'
    if minor:
        minor_name = minor_names[0 if minor == 1 else 1]
        text += f' and {number_to_words(minor, grouping)} {minor_name}'.rstrip()
    return f'{prefix}{text} Only'
