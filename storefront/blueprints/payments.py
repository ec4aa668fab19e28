"""
Payments Blueprint.
Exposes the public Clover iframe configuration and the checkout charge.
"""

import logging
from flask import Blueprint, jsonify, current_app

from storefront.database import get_session
from storefront.decorators.auth import rate_limited
from storefront.exceptions import ConfigurationError, ValidationError
from storefront.services import payment_service
from storefront.utils.formatters import parse_id, to_int_or_none
from storefront.utils.http import get_json_body

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__, url_prefix='/payments')


@payments_bp.route('/config', methods=['GET'])
def payments_config():
    """Merchant id and public key the storefront needs to mount the card iframe."""
    merchant_id = current_app.config.get('CLOVER_MERCHANT_ID')
    public_key = current_app.config.get('CLOVER_ECOMM_PUBLIC_KEY')
    if not merchant_id or not public_key:
        raise ConfigurationError()
    return jsonify({'ok': True, 'merchantId': merchant_id, 'publicKey': public_key})


@payments_bp.route('/charge', methods=['POST'])
@rate_limited('charge', 'RATE_LIMIT_CHARGE')
def charge():
    """
    Charge an order.

    Body: order_id, source_id (clv_ token), total_cents (optional, asserted by client)
    """
    data = get_json_body()

    raw_order_id = data.get('order_id', data.get('orderId'))
    if raw_order_id is None or str(raw_order_id).strip() == '':
        raise ValidationError("order_id is required.")
    order_id = parse_id(raw_order_id)

    source_id = data.get('source_id', data.get('sourceId'))
    raw_total = data.get('total_cents', data.get('totalCents'))
    client_total = None
    if raw_total is not None and raw_total != '':
        client_total = to_int_or_none(raw_total)
        if client_total is None:
            raise ValidationError("total_cents must be an integer number of cents.")

    result = payment_service.charge_order(get_session(), order_id, source_id, client_total)
    return jsonify(result)
