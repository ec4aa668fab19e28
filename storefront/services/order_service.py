"""
Order ledger.
Creates orders with their line snapshots in a single transaction and owns
every write to the orders table that changes payment or kitchen status.
"""
import logging
import random
from typing import Dict, Any, Optional

from flask import current_app
from sqlalchemy import update

from storefront.database import schema_supports
from storefront.exceptions import NotFoundError, ValidationError, PersistenceError
from storefront.blueprints.metrics import orders_created_total
from storefront.models import Order, OrderItem, OrderStatus, PaymentStatus
from storefront.services.job_service import enqueue_job
from storefront.services.notification_service import transition_jobs
from storefront.utils.dates import utcnow

logger = logging.getLogger(__name__)


def generate_order_code(prefix: Optional[str] = None) -> str:
    """Human-readable order code, e.g. DCO-48213. Not unique; orders are keyed by id."""
    prefix = prefix or current_app.config.get('ORDER_CODE_PREFIX', 'DCO')
    return f"{prefix}-{random.randint(10000, 99999)}"


def create_order(session, customer: Dict[str, Any], quote: Dict[str, Any]) -> Order:
    """
    Persist an order and its line snapshots atomically.

    Args:
        customer: customer_name, customer_phone, fulfillment_type
        quote: priced breakdown from pricing_service.price_order

    Returns:
        The committed Order

    Raises:
        ValidationError: If the quote has no lines or breaks the totals invariant
        PersistenceError: If the insert fails (nothing is left behind)
    """
    if not quote.get('lines'):
        raise ValidationError("Cart is empty.")

    expected_total = (
        quote['subtotal_cents'] + quote['processing_fee_cents']
        + quote['delivery_fee_cents'] - quote['discount_cents']
    )
    if expected_total != quote['total_cents']:
        raise ValidationError("Order totals are inconsistent.", code='INVALID_TOTAL')

    order = Order(
        order_code=generate_order_code(),
        customer_name=customer['customer_name'],
        customer_phone=customer['customer_phone'],
        fulfillment_type=customer['fulfillment_type'],
        delivery_address=quote.get('delivery_address'),
        delivery_distance_miles=quote.get('delivery_distance_miles'),
        subtotal_cents=quote['subtotal_cents'],
        processing_fee_cents=quote['processing_fee_cents'],
        delivery_fee_cents=quote['delivery_fee_cents'],
        discount_cents=quote['discount_cents'],
        total_cents=quote['total_cents'],
        promo_code=quote.get('promo_code'),
        payment_status=PaymentStatus.UNPAID.value,
        status=OrderStatus.NEW.value,
    )
    order.items = [
        OrderItem(
            menu_item_id=line.get('menu_item_id'),
            item_name=line['item_name'],
            unit_price_cents=line['unit_price_cents'],
            qty=line['qty'],
            line_total_cents=line['line_total_cents'],
        )
        for line in quote['lines']
    ]

    try:
        session.add(order)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception(f"[ORDER] Failed to persist order: {e}")
        raise PersistenceError("Could not place order. Please try again.", code='ORDER_FAILED')

    log_fields = {
        'order_code': order.order_code,
        'fulfillment_type': order.fulfillment_type,
        'subtotal_cents': order.subtotal_cents,
        'total_cents': order.total_cents,
    }
    if order.delivery_distance_miles is not None:
        log_fields['distance_miles'] = round(order.delivery_distance_miles, 2)
    if order.discount_cents:
        log_fields['promo_code'] = order.promo_code
        log_fields['discount_cents'] = order.discount_cents
    if quote.get('free_item_applied'):
        log_fields['free_juice_promo'] = True
    logger.info(f"[ORDER] Created order {order.id}: {log_fields}")
    orders_created_total.labels(fulfillment_type=order.fulfillment_type).inc()

    return order


def get_order(session, order_id: int, for_update: bool = False) -> Order:
    """Load an order by id or raise NotFoundError."""
    query = session.query(Order).filter(Order.id == order_id)
    if for_update:
        query = query.with_for_update()
    order = query.first()
    if order is None:
        raise NotFoundError("Order not found.")
    return order


def update_status(session, order_id: int, status: str) -> Dict[str, Any]:
    """
    Change the kitchen status of an order.

    Any SMS the transition calls for is enqueued in the same transaction.

    Returns:
        dict with the order, 'before'/'after' snapshots and the enqueued job kinds
    """
    if status not in (OrderStatus.NEW.value, OrderStatus.COMPLETED.value):
        raise ValidationError("status must be new or completed.")
    if not schema_supports('order_status', session):
        raise ValidationError("Order status is not supported in this database.", code='STATUS_NOT_SUPPORTED')

    order = get_order(session, order_id)
    before = order.snapshot()

    order.status = status
    order.updated_at = utcnow()
    after = order.snapshot()

    kinds = transition_jobs(before, after)
    for kind in kinds:
        enqueue_job(session, kind, order.id)

    try:
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception(f"[ORDER] Failed to update status for order {order_id}: {e}")
        raise PersistenceError("Could not update order status.", code='ORDER_STATUS_UPDATE_FAILED')

    logger.info(f"[ORDER] Order {order_id} status {before['status']} -> {after['status']}")
    return {'order': order, 'before': before, 'after': after, 'jobs': kinds}


def mark_paid(session, order_id: int, payment_id: Optional[str], clover_order_id: Optional[str] = None,
              commit: bool = True) -> bool:
    """
    Flip an order from unpaid to paid with a conditional write.

    Returns:
        True when this call performed the transition, False when the order
        was already paid (or missing)
    """
    result = session.execute(
        update(Order)
        .where(Order.id == order_id, Order.payment_status == PaymentStatus.UNPAID.value)
        .values(
            payment_status=PaymentStatus.PAID.value,
            paid_at=utcnow(),
            clover_payment_id=payment_id,
            clover_order_id=clover_order_id,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if commit:
        session.commit()
    return result.rowcount == 1


def record_print_result(session, order_id: int, print_status: str, print_error: Optional[str] = None,
                        **fields) -> None:
    """Store where the POS sync chain stopped for an order."""
    values = dict(fields)
    values['print_status'] = print_status
    values['print_error'] = print_error[:180] if print_error else None
    values['updated_at'] = utcnow()
    try:
        session.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        session.commit()
    except Exception as e:
        session.rollback()
        raise PersistenceError(f"Could not record print status for order {order_id}: {e}")
