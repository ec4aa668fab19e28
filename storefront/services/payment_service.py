"""
Checkout payment orchestration.

An order moves strictly forward from unpaid to paid. Every guard runs before
any provider call; after a capture the local flip to paid and the follow-up
jobs (POS sync, confirmation SMS) are committed together.
"""
import logging
import re
from typing import Dict, Any, Optional

from flask import current_app

from storefront.blueprints.metrics import payments_total
from storefront.exceptions import PaymentRequiredError, PersistenceError
from storefront.models import Order, JobKind, PaymentStatus
from storefront.services import order_service, promo_service
from storefront.services.clover_ecomm_client import CloverEcommClient, CloverApiError, response_snippet
from storefront.services.job_service import enqueue_job
from storefront.services.notification_service import transition_jobs
from storefront.utils.formatters import build_order_note

logger = logging.getLogger(__name__)

PAYMENT_TOKEN_PREFIX = 'clv_'
REASON_RE = re.compile(r'[^A-Z0-9]+')


def normalize_reason(reason) -> str:
    """Provider decline text -> UPPER_SNAKE reason code."""
    text = str(reason or '').strip()
    if not text:
        return PaymentRequiredError.PAYMENT_DECLINED
    normalized = REASON_RE.sub('_', text.upper()).strip('_')[:120]
    return normalized or PaymentRequiredError.PAYMENT_DECLINED


def _reject(reason, order_id=None, computed_total_cents=None, client_total_cents=None, is_paid=None,
            outcome=None, message="Payment could not be processed."):
    payments_total.labels(outcome=outcome or reason.lower()).inc()
    logger.warning(
        f"[PAYMENT] PAYMENT_REQUIRED reason={reason} order_id={order_id} "
        f"computed={computed_total_cents} client={client_total_cents} is_paid={is_paid}"
    )
    raise PaymentRequiredError(
        reason,
        message=message,
        order_id=order_id,
        computed_total_cents=computed_total_cents,
        client_total_cents=client_total_cents,
        is_paid=is_paid,
    )


def _snapshot_drift(session, order: Order) -> Optional[str]:
    """
    Re-check the stored breakdown against live state.

    Returns:
        A short description of the first mismatch, or None
    """
    items = order.items
    if not items:
        return 'order has no line items'
    lines_total = 0
    for item in items:
        if item.qty <= 0 or item.unit_price_cents < 0:
            return f'line {item.id} has invalid quantity or price'
        if item.unit_price_cents * item.qty != item.line_total_cents:
            return f'line {item.id} total does not match unit price x qty'
        lines_total += item.line_total_cents
    if lines_total != order.subtotal_cents:
        return f'line totals {lines_total} != subtotal {order.subtotal_cents}'

    discount = order.discount_cents or 0
    if discount > order.subtotal_cents:
        return 'discount exceeds subtotal'
    if order.promo_code and discount > 0:
        promo = promo_service.evaluate_promo(session, order.promo_code, order.subtotal_cents)
        if not promo['valid']:
            return f"promo {order.promo_code} no longer valid: {promo['message']}"
        if promo['discount_cents'] != discount:
            return f"promo discount {promo['discount_cents']} != stored {discount}"
    elif discount > 0:
        return 'discount without promo code'
    return None


def _ecomm_order_payload(order: Order) -> Dict[str, Any]:
    config = current_app.config
    email = config.get('CLOVER_FALLBACK_EMAIL')
    items = [
        {'name': item.item_name.strip(), 'amount': int(item.unit_price_cents), 'quantity': int(item.qty)}
        for item in order.items
        if (item.item_name or '').strip() and item.unit_price_cents >= 0 and item.qty > 0
    ]
    if not items:
        items = [{'name': 'Online Order', 'amount': max(0, order.total_cents), 'quantity': 1}]

    payload = {
        'currency': 'USD',
        'items': items,
        'customer': {
            'name': (order.customer_name or '').strip() or 'Customer',
            'phone': (order.customer_phone or '').strip(),
        },
        'note': build_order_note(order),
        'description': order_description(order),
        'external_reference_id': f"order-{order.id}",
    }
    if email:
        payload['email'] = email
        payload['customer']['email'] = email
    return payload


def order_description(order: Order) -> str:
    business = current_app.config.get('BUSINESS_NAME', '')
    return f"{business} Online Order {order.order_code or ''}".strip()


def charge_order(session, order_id, source_id, client_total_cents: Optional[int] = None,
                 client: Optional[CloverEcommClient] = None) -> Dict[str, Any]:
    """
    Capture payment for an unpaid order.

    Args:
        order_id: Internal order id
        source_id: Card token issued by the Clover iframe (clv_...)
        client_total_cents: Total the customer saw, when the client sent one

    Returns:
        Charge result: ok, order_id, order_code, payment_status, clover_payment_id,
        clover_order_id and warnings

    Raises:
        PaymentRequiredError: A guard failed or the card was declined (no local change)
        GatewayError: Provider unreachable or timed out (order stays unpaid)
        PersistenceError: Money was captured but the order could not be marked paid
    """
    order = session.get(Order, order_id) if order_id is not None else None
    if order is None:
        _reject(PaymentRequiredError.ORDER_NOT_FOUND, order_id=order_id,
                client_total_cents=client_total_cents, message="Order not found.")

    source_id = str(source_id or '').strip()
    if not source_id or not source_id.startswith(PAYMENT_TOKEN_PREFIX):
        _reject(PaymentRequiredError.MISSING_PAYMENT_TOKEN, order_id=order.id,
                client_total_cents=client_total_cents, message="A valid payment token is required.")

    computed_total = order.computed_total_cents
    if computed_total != order.total_cents or (
        client_total_cents is not None and client_total_cents != order.total_cents
    ):
        _reject(PaymentRequiredError.INVALID_TOTAL, order_id=order.id, computed_total_cents=computed_total,
                client_total_cents=client_total_cents, is_paid=order.is_paid,
                message="Order total changed. Please review your order.")

    if order.is_paid:
        _reject(PaymentRequiredError.ORDER_ALREADY_PAID, order_id=order.id, computed_total_cents=computed_total,
                client_total_cents=client_total_cents, is_paid=True, message="This order is already paid.")

    drift = _snapshot_drift(session, order)
    if drift:
        logger.warning(f"[PAYMENT] Order {order.id} failed re-validation: {drift}")
        _reject(PaymentRequiredError.INVALID_TOTAL, order_id=order.id, computed_total_cents=computed_total,
                client_total_cents=client_total_cents, is_paid=False,
                message="Order total changed. Please review your order.")

    client = client or CloverEcommClient()

    clover_order_id = client.create_order(_ecomm_order_payload(order))

    try:
        pay_data = client.pay_order(
            clover_order_id,
            order.total_cents,
            source_id,
            order_description(order),
            email=current_app.config.get('CLOVER_FALLBACK_EMAIL'),
        )
    except CloverApiError as e:
        reason = normalize_reason(e.provider_code or f"CLOVER_{e.status_code}")
        logger.warning(
            f"[PAYMENT] Charge declined for order {order.id} (status={e.status_code}): {response_snippet(e.details)}"
        )
        _reject(reason, order_id=order.id, computed_total_cents=computed_total,
                client_total_cents=client_total_cents, is_paid=False, outcome='declined',
                message="Payment was declined. Please try another card.")

    payment_id = (
        pay_data.get('id')
        or (pay_data.get('payment') or {}).get('id')
        or (pay_data.get('charge') or {}).get('id')
    )
    logger.info(f"[PAYMENT] Captured order {order.id} payment={payment_id} clover_order={clover_order_id}")

    order_pk = order.id
    before = order.snapshot()
    after = dict(before, payment_status=PaymentStatus.PAID.value)
    try:
        flipped = order_service.mark_paid(session, order_pk, payment_id, clover_order_id, commit=False)
        if not flipped:
            raise RuntimeError('order was already marked paid by a concurrent request')
        enqueue_job(session, JobKind.POS_SYNC.value, order_pk)
        for kind in transition_jobs(before, after):
            enqueue_job(session, kind, order_pk)
        session.commit()
    except Exception as e:
        session.rollback()
        payments_total.labels(outcome='not_recorded').inc()
        logger.critical(
            f"[PAYMENT] Payment captured but NOT recorded for order {order_pk} "
            f"payment={payment_id} clover_order={clover_order_id}: {e}"
        )
        raise PersistenceError(
            "Payment was captured but could not be recorded. Staff has been alerted.",
            code='PAYMENT_NOT_RECORDED',
            payload={'order_id': order_pk, 'clover_payment_id': payment_id, 'clover_order_id': clover_order_id},
        )

    payments_total.labels(outcome='paid').inc()

    order = session.get(Order, order_pk)
    warnings = []
    if order.promo_code and (order.discount_cents or 0) > 0:
        if not promo_service.increment_usage(session, order.promo_code):
            warnings.append('PROMO_USAGE_NOT_RECORDED')

    return {
        'ok': True,
        'order_id': order.id,
        'order_code': order.order_code,
        'payment_status': order.payment_status,
        'clover_payment_id': payment_id,
        'clover_order_id': clover_order_id,
        'warnings': warnings,
    }
