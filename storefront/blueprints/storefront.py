"""
Public storefront blueprint: menu, settings, delivery/promo checks and
order placement.
"""

import logging
from flask import Blueprint, jsonify, current_app

from storefront.database import get_session
from storefront.decorators.auth import rate_limited
from storefront.exceptions import ValidationError
from storefront.models import MenuItem, Settings
from storefront.services import order_service, pricing_service, promo_service
from storefront.utils.formatters import to_cents
from storefront.utils.http import get_json_body

logger = logging.getLogger(__name__)

storefront_bp = Blueprint('storefront', __name__)


@storefront_bp.route('/menu', methods=['GET'])
def menu():
    """Active menu items, grouped by category and sort order."""
    session = get_session()
    items = (
        session.query(MenuItem)
        .filter(MenuItem.is_active.is_(True))
        .order_by(MenuItem.category.asc(), MenuItem.sort_order.asc(), MenuItem.id.asc())
        .all()
    )
    return jsonify([item.to_dict() for item in items])


@storefront_bp.route('/settings', methods=['GET'])
def public_settings():
    session = get_session()
    return jsonify(pricing_service.get_settings(session).to_dict())


@storefront_bp.route('/health', methods=['GET'])
def health():
    """Dependency checks for uptime monitoring."""
    config = current_app.config
    checks = {
        'server': True,
        'database': False,
        'settings_row': False,
        'restaurant_location': config.get('RESTAURANT_LAT') is not None and config.get('RESTAURANT_LNG') is not None,
        'mapbox_token': True,
    }

    session = get_session()
    settings = None
    try:
        session.query(MenuItem.id).limit(1).all()
        checks['database'] = True
        settings = session.query(Settings).filter_by(id=Settings.SINGLETON_ID).first()
        checks['settings_row'] = settings is not None
    except Exception as e:
        session.rollback()
        logger.warning(f"[HEALTH] Database check failed: {e}")

    if settings is not None and settings.delivery_enabled:
        checks['mapbox_token'] = bool(config.get('MAPBOX_TOKEN'))

    return jsonify({'ok': all(checks.values()), 'checks': checks})


@storefront_bp.route('/orders', methods=['POST'])
@rate_limited('orders', 'RATE_LIMIT_ORDERS')
def place_order():
    """
    Place an unpaid order.

    Body: customer_name, customer_phone, fulfillment_type, delivery_address?,
    items [{id, qty}], promo_code?
    """
    data = get_json_body()
    request_data = pricing_service.parse_order_request(data)

    session = get_session()
    settings = pricing_service.get_settings(session)
    quote = pricing_service.price_order(session, settings, request_data)
    order = order_service.create_order(session, request_data, quote)

    return jsonify({
        'ok': True,
        'order_id': order.id,
        'order_code': order.order_code,
        'total_cents': order.total_cents,
    })


@storefront_bp.route('/validate-delivery', methods=['POST'])
@rate_limited('validate-delivery', 'RATE_LIMIT_VALIDATE')
def validate_delivery():
    data = get_json_body()
    raw = data.get('address')
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("Address is required.", code='ADDRESS_REQUIRED')
    address = pricing_service.validate_delivery_address(raw)

    session = get_session()
    settings = pricing_service.get_settings(session)
    if not settings.delivery_enabled:
        raise ValidationError("Delivery is unavailable right now.", code='DELIVERY_DISABLED')

    check = pricing_service.check_delivery_distance(settings, address)
    return jsonify({
        'ok': True,
        'withinRadius': check['within_radius'],
        'radiusMiles': check['radius_miles'],
        'distanceMiles': round(check['distance_miles'], 2),
        'normalizedAddress': check['place_name'],
        'inputAddress': address,
    })


@storefront_bp.route('/validate-promo', methods=['POST'])
@rate_limited('validate-promo', 'RATE_LIMIT_VALIDATE')
def validate_promo():
    data = get_json_body()
    code = data.get('code')
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("Promo code is required.")
    subtotal_cents = to_cents(data.get('subtotal_cents'))
    if subtotal_cents <= 0:
        raise ValidationError("Subtotal is required.")

    result = promo_service.evaluate_promo(get_session(), code, subtotal_cents)
    return jsonify({
        'ok': True,
        'valid': result['valid'],
        'code': result['code'],
        'discount_cents': result['discount_cents'],
        'message': result['message'],
    })
