"""
Customer SMS notifications.

Two messages exist: the confirmation when an order becomes paid, and the
ready message when staff complete it. Each is sent at most once per order:
the sender claims the order's sent-flag with a conditional write before
talking to Twilio, and releases it again if every send attempt fails.
"""
import logging
import time
from typing import Dict, Any, List, Optional

from flask import current_app
from sqlalchemy import update

from storefront.blueprints.metrics import sms_total
from storefront.database import schema_supports
from storefront.exceptions import GatewayError
from storefront.models import Order, OrderStatus, PaymentStatus, FulfillmentType, JobKind
from storefront.services.sms_client import TwilioClient, SmsSendError
from storefront.utils.dates import utcnow
from storefront.utils.formatters import format_cents, to_e164, is_valid_phone

logger = logging.getLogger(__name__)

SMS_MAX_LENGTH = 1600
MORE_ITEMS_MARKER = '+ more items'

# message kind -> (sent flag column, sent-at column)
SENT_FLAGS = {
    JobKind.SMS_CONFIRMATION.value: ('confirmation_sms_sent', 'confirmation_sms_sent_at'),
    JobKind.SMS_READY.value: ('ready_sms_sent', 'ready_sms_sent_at'),
}


def _normalized(value) -> str:
    return str(value or '').strip().lower()


def transition_jobs(before: Dict[str, Any], after: Dict[str, Any]) -> List[str]:
    """
    SMS job kinds triggered by an order change.

    Only two transitions notify: payment status crossing into paid and
    kitchen status crossing into completed.
    """
    if not before or not after or before.get('id') != after.get('id'):
        return []
    kinds = []
    if (_normalized(before.get('payment_status')) != PaymentStatus.PAID.value
            and _normalized(after.get('payment_status')) == PaymentStatus.PAID.value):
        kinds.append(JobKind.SMS_CONFIRMATION.value)
    if (_normalized(before.get('status')) != OrderStatus.COMPLETED.value
            and _normalized(after.get('status')) == OrderStatus.COMPLETED.value):
        kinds.append(JobKind.SMS_READY.value)
    return kinds


def fit_sms_body(header: str, item_lines: List[str], footer: str, limit: int = SMS_MAX_LENGTH) -> str:
    """
    Join header, item lines and footer within limit characters.

    Trailing item lines are dropped first (replaced by a "+ more items" marker);
    header and footer are always kept, the header being cut only when the two
    alone exceed the limit.
    """
    def join(lines):
        return "\n".join(line for line in lines if line)

    body = join([header, *item_lines, footer])
    if len(body) <= limit:
        return body

    kept = list(item_lines)
    while kept:
        kept.pop()
        body = join([header, *kept, MORE_ITEMS_MARKER, footer])
        if len(body) <= limit:
            return body

    body = join([header, MORE_ITEMS_MARKER if item_lines else '', footer])
    if len(body) <= limit:
        return body

    room = limit - len(footer) - 1
    if room <= 0:
        return footer[:limit]
    return join([header[:room], footer])


def build_confirmation_body(order: Order) -> str:
    business = current_app.config.get('BUSINESS_NAME', '')
    name = (order.customer_name or '').strip()
    greeting = f"Thanks {name}! " if name else "Thanks! "
    header = f"{business}: {greeting}Order {order.order_code} is confirmed.".strip()
    if order.fulfillment_type == FulfillmentType.DELIVERY.value:
        header += " We'll deliver to your address."
    else:
        header += " We'll text you when it's ready for pickup."
    item_lines = [f"{item.qty}x {item.item_name}" for item in order.items]
    footer = f"Total: {format_cents(order.total_cents)}"
    return fit_sms_body(header, item_lines, footer)


def build_ready_body(order: Order) -> str:
    name = (order.customer_name or '').strip()
    prefix = f"{name}, " if name else ''
    if order.fulfillment_type == FulfillmentType.PICKUP.value:
        header = f"{prefix}your order {order.order_code} is ready for pickup."
    else:
        header = f"{prefix}your order {order.order_code} has been completed."
    footer = f"Total: {format_cents(order.total_cents)}. Thank you for ordering from us!"
    return fit_sms_body(header, [], footer)


def _claim_flag(session, order_id: int, kind: str) -> bool:
    flag, flag_at = SENT_FLAGS[kind]
    column = getattr(Order, flag)
    result = session.execute(
        update(Order)
        .where(Order.id == order_id, column.is_(False))
        .values({flag: True, flag_at: utcnow()})
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount == 1


def _release_flag(session, order_id: int, kind: str) -> None:
    flag, flag_at = SENT_FLAGS[kind]
    try:
        session.execute(
            update(Order)
            .where(Order.id == order_id)
            .values({flag: False, flag_at: None})
            .execution_options(synchronize_session=False)
        )
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"[SMS] Could not release {flag} for order {order_id}: {e}")


def send_with_retry(client: TwilioClient, to: str, body: str, max_attempts: Optional[int] = None,
                    backoff_base: Optional[float] = None) -> Dict[str, Any]:
    """
    Send one SMS, retrying transport failures with exponential backoff.

    Raises:
        SmsSendError: The last attempt failed
    """
    config = current_app.config
    max_attempts = max_attempts or config.get('SMS_MAX_ATTEMPTS', 3)
    if backoff_base is None:
        backoff_base = config.get('SMS_BACKOFF_BASE', 0.4)

    for attempt in range(1, max_attempts + 1):
        try:
            return client.send(to, body)
        except SmsSendError as e:
            if attempt >= max_attempts:
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            logger.warning(f"[SMS] Send attempt {attempt}/{max_attempts} failed: {e}. Retrying in {delay:.1f}s")
            if delay > 0:
                time.sleep(delay)


def send_order_sms(session, order_id: int, kind: str, client: Optional[TwilioClient] = None) -> bool:
    """
    Send the confirmation or ready SMS for an order at most once.

    Returns:
        True when a message went out, False when it was skipped

    Raises:
        GatewayError: Every send attempt failed (the sent-flag was released)
    """
    order = session.get(Order, order_id)
    if order is None:
        logger.error(f"[SMS] Order {order_id} not found for {kind}")
        return False

    phone = to_e164(order.customer_phone) if is_valid_phone(order.customer_phone) else ''
    if not phone:
        logger.warning(f"[SMS] Order {order_id} has no usable phone; skipping {kind}")
        sms_total.labels(kind=kind, outcome='skipped').inc()
        return False

    body = build_confirmation_body(order) if kind == JobKind.SMS_CONFIRMATION.value else build_ready_body(order)

    guarded = schema_supports('sms_flags', session)
    if guarded:
        if not _claim_flag(session, order_id, kind):
            logger.info(f"[SMS] {kind} already sent for order {order_id}; skipping")
            sms_total.labels(kind=kind, outcome='duplicate').inc()
            return False
    else:
        logger.warning(
            f"[SMS] Schema predates SMS sent-flags; sending {kind} for order {order_id} without idempotency"
        )

    try:
        client = client or TwilioClient()
        result = send_with_retry(client, phone, body)
    except Exception as e:
        logger.error(f"[SMS] Failed to send {kind} for order {order_id}: {e}")
        sms_total.labels(kind=kind, outcome='failed').inc()
        if guarded:
            _release_flag(session, order_id, kind)
        raise GatewayError("SMS could not be sent.", code='SMS_FAILED')

    sms_total.labels(kind=kind, outcome='sent').inc()
    logger.info(f"[SMS] Sent {kind} for order {order_id} (sid={(result or {}).get('sid')})")
    return True


def send_confirmation_sms(session, order_id: int) -> bool:
    return send_order_sms(session, order_id, JobKind.SMS_CONFIRMATION.value)


def send_ready_sms(session, order_id: int) -> bool:
    return send_order_sms(session, order_id, JobKind.SMS_READY.value)
