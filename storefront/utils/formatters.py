"""
Formatting and input-normalization helpers.
Money is stored as integer cents everywhere; these helpers render it for
SMS bodies and POS notes and coerce loosely-typed JSON input.
"""
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

PHONE_ALLOWED_RE = re.compile(r'^[0-9\s()+-]+$')
NON_DIGIT_RE = re.compile(r'\D')
CITY_RE = re.compile(r'\bphiladelphia\b', re.IGNORECASE)
STATE_RE = re.compile(
    r'\b(AL|AK|AZ|AR|CA|CO|CT|DE|FL|GA|HI|ID|IL|IN|IA|KS|KY|LA|ME|MD|MA|MI|MN|MS|MO|MT|NE|NV|NH|NJ|NM|NY|'
    r'NC|ND|OH|OK|OR|PA|RI|SC|SD|TN|TX|UT|VT|VA|WA|WV|WI|WY|DC)\b',
    re.IGNORECASE,
)


def format_cents(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format integer cents as a dollar amount.

    Examples:
        format_cents(1150) -> "$11.50"
        format_cents(None) -> "$0.00"
    """
    try:
        cents = Decimal(str(value if value is not None else 0))
    except (InvalidOperation, ValueError, TypeError):
        return "$0.00"
    if not cents.is_finite():
        return "$0.00"
    return f"${(cents / 100):.2f}"


def to_cents(value) -> int:
    """Coerce a JSON number (or numeric string) to integer cents, 0 when invalid."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return 0
    if not number.is_finite():
        return 0
    return int(number.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def to_int_or_none(value) -> Optional[int]:
    """Return value as int when it is an integral number, else None."""
    if isinstance(value, bool) or value is None or value == '':
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    return int(number)


def parse_id(value) -> Optional[int]:
    """Parse a positive integer identifier."""
    number = to_int_or_none(value)
    if number is None or number <= 0:
        return None
    return number


def digits_only(phone) -> str:
    return NON_DIGIT_RE.sub('', str(phone or ''))


def is_valid_phone(phone) -> bool:
    """At least 10 digits; only digits, spaces, parentheses, plus and hyphens."""
    if not isinstance(phone, str) or not phone.strip():
        return False
    trimmed = phone.strip()
    if not PHONE_ALLOWED_RE.match(trimmed):
        return False
    return len(digits_only(trimmed)) >= 10


def to_e164(phone) -> str:
    """Best-effort US E.164 formatting for SMS delivery."""
    digits = digits_only(phone)
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith('1'):
        return f"+{digits}"
    return f"+{digits}" if digits else ''


def normalize_delivery_address(raw, default_suffix: str = 'Philadelphia, PA') -> str:
    """
    Append the default city/state when the customer omitted them.

    Examples:
        "123 Main St" -> "123 Main St, Philadelphia, PA"
        "123 Main St Philadelphia" -> "123 Main St Philadelphia, PA"
        "123 Main St, Camden NJ" -> unchanged
    """
    text = str(raw or '').strip()
    if not text:
        return ''

    has_city = bool(CITY_RE.search(text))
    has_state = bool(STATE_RE.search(text))

    if not has_city and not has_state:
        return f"{text}, {default_suffix}"
    if has_city and not has_state:
        state = default_suffix.rsplit(',', 1)[-1].strip()
        return f"{text}, {state}"
    return text


def short_error(err, limit: int = 180) -> str:
    """Compact, length-limited description of an error for storage on a row."""
    if err is None:
        return 'Unknown error'
    text = str(err).strip() or err.__class__.__name__
    return text[:limit]


def build_order_note(order) -> str:
    """Multi-line ticket note mirrored to the POS and the payment provider."""
    fulfillment = (order.fulfillment_type or '').upper() or '-'
    return "\n".join([
        f"ONLINE ORDER: {order.order_code or '-'}",
        f"Promo: {order.promo_code or '-'}",
        f"Type: {fulfillment}",
        f"Name: {order.customer_name or '-'}",
        f"Phone: {order.customer_phone or '-'}",
        f"Address: {order.delivery_address or '-'}",
        "---",
        f"Subtotal: {format_cents(order.subtotal_cents)}",
        f"Processing fee: {format_cents(order.processing_fee_cents)}",
        f"Delivery fee: {format_cents(order.delivery_fee_cents)}",
        f"Discount: -{format_cents(order.discount_cents)}",
        f"Total: {format_cents(order.total_cents)}",
    ])
