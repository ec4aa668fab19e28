"""Admin edits to the settings singleton."""
import logging
from typing import Dict, Any

from storefront.exceptions import ValidationError, PersistenceError
from storefront.models import Settings
from storefront.services.pricing_service import get_settings
from storefront.utils.dates import utcnow

logger = logging.getLogger(__name__)

# Fields stored in cents are integers; the radius is miles.
FLOAT_FIELDS = ('delivery_radius_miles',)


def _parse_non_negative(field, value):
    if isinstance(value, bool) or value is None or value == '':
        raise ValidationError(f"{field} must be a non-negative number.")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a non-negative number.")
    if number != number or number in (float('inf'), float('-inf')) or number < 0:
        raise ValidationError(f"{field} must be a non-negative number.")
    if field in FLOAT_FIELDS:
        return number
    if not number.is_integer():
        raise ValidationError(f"{field} must be a whole number of cents.")
    return int(number)


def update_settings(session, changes: Dict[str, Any]) -> Settings:
    """
    Apply a partial update to the settings row.

    Raises:
        ValidationError: Bad field type, no known field, or a combination that
            would leave delivery / free juice enabled without its threshold
    """
    update = {}
    for field in Settings.EDITABLE_FLAGS:
        if field in changes:
            if not isinstance(changes[field], bool):
                raise ValidationError(f"{field} must be a boolean.")
            update[field] = changes[field]
    for field in Settings.EDITABLE_NUMBERS:
        if field in changes:
            update[field] = _parse_non_negative(field, changes[field])

    if not update:
        raise ValidationError("No valid fields provided.")

    settings = get_settings(session)
    current = settings.to_dict()
    current.update(update)

    if current['delivery_enabled'] and not (current['delivery_radius_miles'] or 0) > 0:
        raise ValidationError("delivery_radius_miles must be greater than 0 when delivery is enabled.")
    if current['free_juice_enabled'] and not (current['free_juice_min_subtotal_cents'] or 0) > 0:
        raise ValidationError(
            "free_juice_min_subtotal_cents must be greater than 0 when free juice promo is enabled."
        )

    for field, value in update.items():
        setattr(settings, field, value)
    settings.updated_at = utcnow()

    try:
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception(f"[SETTINGS] Update failed: {e}")
        raise PersistenceError("Could not update settings.", code='SETTINGS_UPDATE_FAILED')

    logger.info(f"[SETTINGS] Updated {sorted(update.keys())}")
    return settings
