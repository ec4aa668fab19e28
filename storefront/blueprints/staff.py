"""
Staff Blueprint.
Kitchen dashboard: paid orders, completion toggle, stock sections and toggle.
Requires `Authorization: Bearer <STAFF_TOKEN>`.
"""

import logging
from flask import Blueprint, jsonify
from sqlalchemy import or_
from sqlalchemy.orm import selectinload

from storefront.database import get_session
from storefront.decorators.auth import staff_token_required
from storefront.models import Order, OrderStatus, PaymentStatus
from storefront.services import catalog_service, order_service
from storefront.utils.http import get_json_body, require_id, require_bool

logger = logging.getLogger(__name__)

staff_bp = Blueprint('staff', __name__, url_prefix='/staff')

STAFF_ORDERS_LIMIT = 50


@staff_bp.route('/orders', methods=['GET'])
@staff_token_required
def list_orders():
    """Paid orders, most recently paid first, with their items."""
    orders = (
        get_session().query(Order)
        .options(selectinload(Order.items))
        .filter(or_(Order.payment_status == PaymentStatus.PAID.value, Order.paid_at.isnot(None)))
        .order_by(Order.paid_at.desc(), Order.created_at.desc(), Order.id.desc())
        .limit(STAFF_ORDERS_LIMIT)
        .all()
    )
    return jsonify([order.to_dict(include_items=True) for order in orders])


@staff_bp.route('/orders/<order_id>/complete', methods=['POST'])
@staff_token_required
def complete_order(order_id):
    """Body: {completed: bool}. Completing a paid order texts the customer."""
    order_pk = require_id(order_id)
    completed = require_bool(get_json_body(), 'completed')
    status = OrderStatus.COMPLETED.value if completed else OrderStatus.NEW.value

    result = order_service.update_status(get_session(), order_pk, status)
    order = result['order']
    return jsonify({
        'id': order.id,
        'status': order.status,
        'payment_status': order.payment_status,
        'confirmation_sms_sent': order.confirmation_sms_sent,
        'ready_sms_sent': order.ready_sms_sent,
    })


@staff_bp.route('/inventory/<item_id>/toggle', methods=['POST'])
@staff_token_required
def toggle_inventory(item_id):
    """Body: {in_stock: bool}."""
    item_pk = require_id(item_id, 'Menu item id')
    in_stock = require_bool(get_json_body(), 'in_stock')
    item = catalog_service.set_in_stock(get_session(), item_pk, in_stock)
    return jsonify(item.to_dict())


@staff_bp.route('/inventory/sections', methods=['GET'])
@staff_token_required
def inventory_sections():
    """Active menu items grouped by category for the stock screen."""
    return jsonify(catalog_service.inventory_sections(get_session()))
