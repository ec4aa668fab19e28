"""
Admin Blueprint.
Settings, order review, sales summary, POS reprint, promo codes and menu
edits. Every route requires the x-admin-token header.
"""

import logging
from flask import Blueprint, jsonify, request

from storefront.database import get_session
from storefront.decorators.auth import admin_token_required
from storefront.exceptions import ValidationError
from storefront.models import Order, PaymentStatus, PromoCode
from storefront.services import (
    catalog_service, order_service, pos_sync_service, pricing_service, promo_service, settings_service,
    stats_service,
)
from storefront.utils.formatters import parse_id
from storefront.utils.http import get_json_body, require_id

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

ORDERS_PAGE_SIZE = 50
ORDERS_MAX_PAGE_SIZE = 200


@admin_bp.route('/settings', methods=['GET'])
@admin_token_required
def get_settings():
    return jsonify(pricing_service.get_settings(get_session()).to_dict())


@admin_bp.route('/settings', methods=['PATCH'])
@admin_token_required
def patch_settings():
    settings = settings_service.update_settings(get_session(), get_json_body())
    return jsonify(settings.to_dict())


@admin_bp.route('/orders', methods=['GET'])
@admin_token_required
def list_orders():
    """
    Most recent orders.

    Query params:
        payment_status: paid (default), unpaid or all
        limit: page size (default 50, max 200)
    """
    payment_status = (request.args.get('payment_status') or PaymentStatus.PAID.value).strip().lower()
    if payment_status not in ('all', PaymentStatus.PAID.value, PaymentStatus.UNPAID.value):
        raise ValidationError("payment_status must be paid, unpaid or all.")
    limit = parse_id(request.args.get('limit')) or ORDERS_PAGE_SIZE
    limit = min(limit, ORDERS_MAX_PAGE_SIZE)

    query = get_session().query(Order)
    if payment_status != 'all':
        query = query.filter(Order.payment_status == payment_status)
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
    return jsonify([order.to_dict() for order in orders])


@admin_bp.route('/orders/<order_id>', methods=['GET'])
@admin_token_required
def get_order(order_id):
    order = order_service.get_order(get_session(), require_id(order_id))
    data = order.to_dict(include_items=True)
    return jsonify({'order': data, 'items': data.pop('items')})


@admin_bp.route('/orders/<order_id>', methods=['PATCH'])
@admin_token_required
def patch_order(order_id):
    """Change the kitchen status (new/completed)."""
    data = get_json_body()
    if 'status' not in data:
        raise ValidationError("status is required.")
    status = data['status']
    if not isinstance(status, str) or not status.strip():
        raise ValidationError("status must be a non-empty string.")

    result = order_service.update_status(get_session(), require_id(order_id), status.strip().lower())
    order = result['order']
    return jsonify({'id': order.id, 'status': order.status})


@admin_bp.route('/orders/<order_id>/reprint', methods=['POST'])
@admin_token_required
def reprint_order(order_id):
    return jsonify(pos_sync_service.reprint_order(get_session(), require_id(order_id)))


@admin_bp.route('/promo-codes', methods=['GET'])
@admin_token_required
def list_promo_codes():
    promos = get_session().query(PromoCode).order_by(PromoCode.created_at.desc(), PromoCode.id.desc()).all()
    return jsonify({'ok': True, 'promo_codes': [promo.to_dict() for promo in promos]})


@admin_bp.route('/promo-codes', methods=['POST'])
@admin_token_required
def save_promo_code():
    promo = promo_service.save_promo_code(get_session(), get_json_body())
    return jsonify({'ok': True, 'promo_code': promo.to_dict()})


@admin_bp.route('/menu-items/<item_id>', methods=['PATCH'])
@admin_token_required
def patch_menu_item(item_id):
    item = catalog_service.update_menu_item(
        get_session(), require_id(item_id, 'Menu item id'), get_json_body()
    )
    return jsonify(item.to_dict())


@admin_bp.route('/menu', methods=['GET'])
@admin_token_required
def list_menu():
    """All menu items, inactive ones included."""
    items = catalog_service.list_all_items(get_session())
    return jsonify([item.to_dict() for item in items])


@admin_bp.route('/stats/summary', methods=['GET'])
@admin_token_required
def stats_summary():
    """
    Paid order counts and revenue.

    Query params:
        date: YYYY-MM-DD (UTC day, default today)
    """
    selected = stats_service.parse_summary_date(request.args.get('date'))
    return jsonify(stats_service.sales_summary(get_session(), selected))
