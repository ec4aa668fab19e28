"""
Promo code validation.
Stateless: every call re-reads the promo row and re-checks it against the
subtotal it is given, so the same function serves order placement, the
storefront's validate-promo call and re-validation at charge time.
"""
import logging
from typing import Dict, Any, Optional

from sqlalchemy import update

from storefront.exceptions import ValidationError, PersistenceError
from storefront.models import PromoCode, DiscountType, normalize_promo_code
from storefront.utils.dates import utcnow, as_utc, parse_iso_timestamp
from storefront.utils.formatters import format_cents, to_int_or_none

logger = logging.getLogger(__name__)


def compute_discount_cents(discount_type: str, discount_value: int, subtotal_cents: int,
                           max_discount_cents: Optional[int] = None) -> int:
    """
    Discount for a subtotal.

    flat: the value itself. percent: floor(subtotal * pct / 100), pct clamped to 0..100.
    The result is capped at max_discount_cents, then at the subtotal, and floored at 0.
    """
    subtotal = int(subtotal_cents or 0)
    value = max(0, int(discount_value or 0))
    if subtotal <= 0:
        return 0

    discount = 0
    if discount_type == DiscountType.FLAT.value:
        discount = value
    elif discount_type == DiscountType.PERCENT.value:
        pct = max(0, min(100, value))
        discount = (subtotal * pct) // 100

    if max_discount_cents is not None:
        discount = min(discount, int(max_discount_cents))

    return max(0, min(discount, subtotal))


def _result(valid, code, discount_cents=0, message='', promo=None):
    return {
        'valid': valid,
        'code': code,
        'discount_cents': discount_cents,
        'discount_type': promo.discount_type if promo else None,
        'message': message,
    }


def evaluate_promo(session, code, subtotal_cents: int, now=None) -> Dict[str, Any]:
    """
    Validate a promo code against a subtotal and the promo's live state.

    Returns:
        dict with valid, code, discount_cents, discount_type and a customer-facing message
    """
    code = normalize_promo_code(code)
    if not code:
        return _result(False, code, message='Promo code is required.')

    promo = session.query(PromoCode).filter_by(code=code).first()
    if promo is None:
        return _result(False, code, message='Code not found.')

    if not promo.active:
        return _result(False, code, message='Code is inactive.')

    now = now or utcnow()
    if promo.starts_at and as_utc(promo.starts_at) > now:
        return _result(False, code, message='Code not active yet.')
    if promo.expires_at and as_utc(promo.expires_at) <= now:
        return _result(False, code, message='Code has expired.')

    min_order = int(promo.min_order_cents or 0)
    if subtotal_cents < min_order:
        return _result(False, code, message=f'Minimum order is {format_cents(min_order)}.')

    if promo.usage_limit is not None:
        if int(promo.used_count or 0) >= max(0, int(promo.usage_limit)):
            return _result(False, code, message='Code usage limit reached.')

    discount = compute_discount_cents(
        promo.discount_type,
        promo.discount_value,
        subtotal_cents,
        promo.max_discount_cents,
    )
    if discount <= 0:
        return _result(False, code, message='Code not applicable.')

    return _result(True, promo.code, discount, 'Promo applied.', promo)


def increment_usage(session, code) -> bool:
    """
    Record one redemption of a promo code.

    Called only after a payment capture has been committed. Failures are logged
    and reported to the caller, never raised.
    """
    code = normalize_promo_code(code)
    if not code:
        return False
    try:
        result = session.execute(
            update(PromoCode)
            .where(PromoCode.code == code)
            .values(used_count=PromoCode.used_count + 1)
        )
        session.commit()
        if result.rowcount != 1:
            logger.warning(f"[PROMO] Usage increment matched {result.rowcount} rows for {code}")
            return False
        return True
    except Exception as e:
        session.rollback()
        logger.error(f"[PROMO] Failed to increment usage for {code}: {e}")
        return False


def _optional_int(body, field, minimum):
    value = body.get(field)
    if value is None or value == '':
        return None
    number = to_int_or_none(value)
    if number is None or number < minimum:
        raise ValidationError(f"{field} must be null or an integer >= {minimum}.")
    return number


def _optional_timestamp(body, field):
    try:
        return parse_iso_timestamp(body.get(field))
    except ValueError:
        raise ValidationError(f"{field} must be null or an ISO timestamp.")


def save_promo_code(session, body: Dict[str, Any]) -> PromoCode:
    """
    Create or replace a promo code (keyed by its normalized code).

    used_count is never reset by a save.
    """
    if not isinstance(body.get('code'), str) or not normalize_promo_code(body['code']):
        raise ValidationError("code is required.")
    code = normalize_promo_code(body['code'])
    if len(code) > 40:
        raise ValidationError("code must be 40 characters or less.")

    discount_type = str(body.get('discount_type') or '').strip().lower()
    if discount_type not in (DiscountType.FLAT.value, DiscountType.PERCENT.value):
        raise ValidationError("discount_type must be flat or percent.")

    discount_value = to_int_or_none(body.get('discount_value'))
    if discount_value is None or discount_value <= 0:
        raise ValidationError("discount_value must be an integer > 0.")
    if discount_type == DiscountType.PERCENT.value and discount_value > 100:
        raise ValidationError("Percent discounts cannot exceed 100.")

    min_order = to_int_or_none(body.get('min_order_cents', 0) or 0)
    if min_order is None or min_order < 0:
        raise ValidationError("min_order_cents must be an integer >= 0.")

    if not isinstance(body.get('active'), bool):
        raise ValidationError("active must be a boolean.")

    max_discount = _optional_int(body, 'max_discount_cents', 0)
    usage_limit = _optional_int(body, 'usage_limit', 0)
    starts_at = _optional_timestamp(body, 'starts_at')
    expires_at = _optional_timestamp(body, 'expires_at')
    note = body.get('note')
    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be a string.")

    promo = session.query(PromoCode).filter_by(code=code).first()
    if promo is None:
        promo = PromoCode(code=code, used_count=0)
        session.add(promo)

    promo.discount_type = discount_type
    promo.discount_value = discount_value
    promo.min_order_cents = min_order
    promo.max_discount_cents = max_discount
    promo.usage_limit = usage_limit
    promo.starts_at = starts_at
    promo.expires_at = expires_at
    promo.active = body['active']
    if note is not None:
        promo.note = note.strip()[:200] or None
    promo.updated_at = utcnow()

    try:
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception(f"[PROMO] Failed to save promo code {code}: {e}")
        raise PersistenceError("Could not save promo code.", code='PROMO_CODE_SAVE_FAILED')

    logger.info(f"[PROMO] Saved promo code {code}")
    return promo
