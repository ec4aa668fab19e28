"""
Pricing engine.
Turns a validated order request plus the live Settings row into priced order
lines and the subtotal / fee / discount / total breakdown.
"""
import logging
from typing import Dict, Any, List, Optional

from flask import current_app

from storefront.exceptions import ValidationError, ConfigurationError
from storefront.models import MenuItem, Settings, FulfillmentType
from storefront.services.geocoding_client import MapboxClient, haversine_miles
from storefront.services.promo_service import evaluate_promo
from storefront.utils.formatters import (
    format_cents, is_valid_phone, normalize_delivery_address, to_cents, to_int_or_none,
)

logger = logging.getLogger(__name__)

NAME_MIN_LEN = 1
NAME_MAX_LEN = 30
ADDRESS_MIN_LEN = 5
ADDRESS_MAX_LEN = 60
MAX_UNIQUE_ITEMS = 30
MAX_ITEM_QTY = 20
MAX_TOTAL_QTY = 50

FREE_JUICE_PROMO_TYPE = 'FREE_JUICE'
FREE_JUICE_LABEL = '(Free Natural Juice Promo)'


def get_settings(session) -> Settings:
    """Load the settings singleton."""
    settings = session.query(Settings).filter_by(id=Settings.SINGLETON_ID).first()
    if settings is None:
        raise ConfigurationError("Store settings are not configured.", code='SETTINGS_MISSING')
    return settings


def _is_promo_free_item(item: Dict[str, Any]) -> bool:
    promo_type = item.get('promo_type') or item.get('promoType') or ''
    promo_type = promo_type.strip().upper() if isinstance(promo_type, str) else ''
    if promo_type and promo_type != FREE_JUICE_PROMO_TYPE:
        raise ValidationError("Unsupported promo item type.")
    return (
        item.get('is_promo_free_item') is True
        or item.get('isPromoFreeItem') is True
        or promo_type == FREE_JUICE_PROMO_TYPE
    )


def normalize_cart(items) -> Dict[str, Any]:
    """
    Validate and merge the cart lines of an order request.

    Returns:
        dict with 'quantities' ({menu_item_id: qty}, insertion ordered) and
        'free_item_id' (the requested free-juice item or None)

    Raises:
        ValidationError: On any malformed line or limit violation
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("Cart is empty.")

    quantities: Dict[int, int] = {}
    free_item_id = None
    total_qty = 0

    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must include a valid id and quantity.")

        item_id = to_int_or_none(item.get('id'))
        if item_id is None:
            raise ValidationError("Each item must include a valid id and quantity.")

        if _is_promo_free_item(item):
            if free_item_id is not None:
                raise ValidationError("Only one free juice promo item is allowed per order.")
            promo_qty = item.get('qty', item.get('quantity', 1))
            if to_int_or_none(promo_qty) != 1:
                raise ValidationError("Free juice promo item quantity must be exactly 1.")
            free_item_id = item_id
            continue

        qty = to_int_or_none(item.get('qty'))
        if qty is None or qty < 1 or qty > MAX_ITEM_QTY:
            raise ValidationError(f"Each item quantity must be between 1 and {MAX_ITEM_QTY}.")

        merged = quantities.get(item_id, 0) + qty
        if merged > MAX_ITEM_QTY:
            raise ValidationError(f"Each item quantity must be between 1 and {MAX_ITEM_QTY}.")
        quantities[item_id] = merged
        total_qty += qty

        if len(quantities) > MAX_UNIQUE_ITEMS:
            raise ValidationError(f"Cart cannot contain more than {MAX_UNIQUE_ITEMS} unique items.")
        if total_qty > MAX_TOTAL_QTY:
            raise ValidationError(f"Cart cannot contain more than {MAX_TOTAL_QTY} total items.")

    if not quantities:
        raise ValidationError("Cart is empty.")

    return {'quantities': quantities, 'free_item_id': free_item_id}


def parse_order_request(payload) -> Dict[str, Any]:
    """Validate the customer fields and cart of a POST /orders body."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid order payload.")

    name = payload.get('customer_name')
    phone = payload.get('customer_phone')
    name = name.strip() if isinstance(name, str) else ''
    phone = phone.strip() if isinstance(phone, str) else ''

    if not name or not phone:
        raise ValidationError("Name and phone are required.")
    if len(name) < NAME_MIN_LEN or len(name) > NAME_MAX_LEN:
        raise ValidationError(f"Name must be between {NAME_MIN_LEN} and {NAME_MAX_LEN} characters.")
    if not is_valid_phone(phone):
        raise ValidationError(
            "Phone number must contain at least 10 digits and may include only numbers, "
            "spaces, parentheses, plus, or hyphens."
        )

    fulfillment_type = payload.get('fulfillment_type')
    if fulfillment_type not in (FulfillmentType.PICKUP.value, FulfillmentType.DELIVERY.value):
        raise ValidationError("Order type must be pickup or delivery.")

    delivery_address = None
    if fulfillment_type == FulfillmentType.DELIVERY.value:
        delivery_address = validate_delivery_address(payload.get('delivery_address'))

    promo_code = payload.get('promo_code')
    promo_code = promo_code.strip().upper() if isinstance(promo_code, str) else ''

    cart = normalize_cart(payload.get('items'))

    return {
        'customer_name': name,
        'customer_phone': phone,
        'fulfillment_type': fulfillment_type,
        'delivery_address': delivery_address,
        'promo_code': promo_code or None,
        'quantities': cart['quantities'],
        'free_item_id': cart['free_item_id'],
    }


def validate_delivery_address(raw) -> str:
    suffix = current_app.config.get('DEFAULT_CITY_SUFFIX', 'Philadelphia, PA')
    address = normalize_delivery_address(raw, suffix)
    if not address:
        raise ValidationError("Delivery address is required for delivery orders.")
    if len(address) < ADDRESS_MIN_LEN or len(address) > ADDRESS_MAX_LEN:
        raise ValidationError(
            f"Delivery address must be between {ADDRESS_MIN_LEN} and {ADDRESS_MAX_LEN} characters."
        )
    return address


def check_delivery_distance(settings: Settings, address: str, geocoder=None) -> Dict[str, Any]:
    """
    Geocode an address and measure it against the delivery radius.

    Returns:
        dict with within_radius, radius_miles, distance_miles and place_name

    Raises:
        ConfigurationError: Radius or restaurant location missing
        ValidationError: ADDRESS_NOT_FOUND when geocoding has no match
        GatewayError: Geocoding provider failure
    """
    radius = settings.delivery_radius_miles
    if radius is None or radius <= 0:
        raise ConfigurationError("Delivery radius is not configured.", code='RADIUS_NOT_CONFIGURED')

    lat = current_app.config.get('RESTAURANT_LAT')
    lng = current_app.config.get('RESTAURANT_LNG')
    if lat is None or lng is None:
        raise ConfigurationError("Restaurant location is not configured.", code='RESTAURANT_LOCATION_MISSING')

    geocoder = geocoder or MapboxClient()
    geo = geocoder.geocode(address)
    if not geo:
        raise ValidationError(
            "Could not verify that delivery address. Please include city and ZIP code.",
            code='ADDRESS_NOT_FOUND',
        )

    distance = haversine_miles(lat, lng, geo['lat'], geo['lng'])
    return {
        'within_radius': distance <= radius,
        'radius_miles': radius,
        'distance_miles': distance,
        'place_name': geo.get('place_name') or '',
    }


def _resolve_free_item(session, settings: Settings, subtotal_cents: int, free_item_id, menu_by_id):
    """Return the zero-priced promo line, or None when the promo does not apply."""
    threshold = max(0, int(settings.free_juice_min_subtotal_cents or 0))
    eligible = bool(settings.free_juice_enabled) and threshold > 0 and subtotal_cents >= threshold

    if not eligible:
        if free_item_id is not None:
            logger.info(
                f"[PROMO] Dropped client free juice item {free_item_id} "
                f"(subtotal={subtotal_cents}, threshold={threshold}, enabled={settings.free_juice_enabled})"
            )
        return None

    if free_item_id is None:
        raise ValidationError("Please select your free juice.", code='FREE_JUICE_REQUIRED')

    menu_item = menu_by_id.get(free_item_id)
    if menu_item is None:
        menu_item = session.query(MenuItem).filter_by(id=free_item_id).first()

    if menu_item is None or not menu_item.is_free_juice_eligible:
        raise ValidationError(
            "Selected free juice must be an eligible active in-stock natural juice.",
            code='INVALID_FREE_JUICE',
        )

    return {
        'menu_item_id': menu_item.id,
        'item_name': f"{menu_item.name} {FREE_JUICE_LABEL}",
        'unit_price_cents': 0,
        'qty': 1,
        'line_total_cents': 0,
    }


def price_order(session, settings: Settings, request_data: Dict[str, Any], geocoder=None) -> Dict[str, Any]:
    """
    Price a parsed order request against the live menu and settings.

    Returns:
        dict with lines, subtotal_cents, processing_fee_cents, delivery_fee_cents,
        discount_cents, total_cents, promo_code, delivery_address, delivery_distance_miles

    Raises:
        ValidationError: ORDERING_CLOSED, DELIVERY_DISABLED, ITEM_UNAVAILABLE,
            DELIVERY_MIN_NOT_MET, ADDRESS_NOT_FOUND, OUTSIDE_RADIUS, free juice errors
    """
    if not settings.ordering_enabled:
        raise ValidationError("Ordering is currently closed.", code='ORDERING_CLOSED')

    is_delivery = request_data['fulfillment_type'] == FulfillmentType.DELIVERY.value
    if is_delivery and not settings.delivery_enabled:
        raise ValidationError("Delivery is unavailable right now.", code='DELIVERY_DISABLED')

    quantities = request_data['quantities']
    menu_items = session.query(MenuItem).filter(MenuItem.id.in_(list(quantities.keys()))).all()
    menu_by_id = {item.id: item for item in menu_items}

    lines: List[Dict[str, Any]] = []
    subtotal = 0
    for item_id, qty in quantities.items():
        menu_item = menu_by_id.get(item_id)
        if menu_item is None or not menu_item.is_available:
            raise ValidationError("One or more items are unavailable.", code='ITEM_UNAVAILABLE')

        unit_price = to_cents(menu_item.price_cents)
        line_total = unit_price * qty
        subtotal += line_total
        lines.append({
            'menu_item_id': menu_item.id,
            'item_name': menu_item.name,
            'unit_price_cents': unit_price,
            'qty': qty,
            'line_total_cents': line_total,
        })

    free_line = _resolve_free_item(session, settings, subtotal, request_data.get('free_item_id'), menu_by_id)
    if free_line:
        lines.append(free_line)

    distance_miles = None
    if is_delivery:
        minimum = to_cents(settings.delivery_min_total_cents)
        if subtotal < minimum:
            raise ValidationError(
                f"Delivery requires a minimum of {format_cents(minimum)}.",
                code='DELIVERY_MIN_NOT_MET',
            )
        check = check_delivery_distance(settings, request_data['delivery_address'], geocoder)
        distance_miles = check['distance_miles']
        if not check['within_radius']:
            raise ValidationError(
                f"Delivery is available within {check['radius_miles']} miles.",
                code='OUTSIDE_RADIUS',
            )

    discount = 0
    applied_code = None
    if request_data.get('promo_code'):
        promo = evaluate_promo(session, request_data['promo_code'], subtotal)
        if promo['valid']:
            discount = promo['discount_cents']
            applied_code = promo['code']
        else:
            logger.info(f"[PROMO] Code {request_data['promo_code']} not applied: {promo['message']}")

    breakdown = compute_totals(settings, subtotal, request_data['fulfillment_type'], discount)
    breakdown.update({
        'lines': lines,
        'promo_code': applied_code,
        'delivery_address': request_data.get('delivery_address'),
        'delivery_distance_miles': distance_miles,
        'free_item_applied': free_line is not None,
    })
    return breakdown


def compute_totals(settings: Settings, subtotal_cents: int, fulfillment_type: str,
                   discount_cents: int = 0) -> Dict[str, int]:
    """Fee schedule and total for a subtotal; the discount never exceeds the subtotal."""
    processing_fee = to_cents(settings.processing_fee_cents) if subtotal_cents > 0 else 0
    delivery_fee = (
        to_cents(settings.delivery_fee_cents)
        if fulfillment_type == FulfillmentType.DELIVERY.value else 0
    )
    discount = max(0, min(int(discount_cents or 0), subtotal_cents))
    return {
        'subtotal_cents': subtotal_cents,
        'processing_fee_cents': processing_fee,
        'delivery_fee_cents': delivery_fee,
        'discount_cents': discount,
        'total_cents': subtotal_cents + processing_fee + delivery_fee - discount,
    }
