"""
POS sync.

Mirrors a paid order into the restaurant's Clover POS and prints the kitchen
ticket. The chain is merchant -> token -> create_order -> line_item -> print;
print_status / print_error on the order record exactly where it stopped.
Nothing here is retried automatically: staff use the reprint endpoint.
"""
import logging
from typing import Dict, Any

from flask import current_app

from storefront.blueprints.metrics import pos_sync_total
from storefront.exceptions import StorefrontError, GatewayError, ValidationError
from storefront.models import PrintStatus
from storefront.services import clover_auth_service, order_service
from storefront.services.clover_ecomm_client import CloverApiError, response_snippet
from storefront.services.clover_pos_client import CloverPosClient
from storefront.utils.formatters import build_order_note, short_error

logger = logging.getLogger(__name__)

PRINT_ERROR_MAX = 180


class PosStepError(Exception):
    """A step of the POS chain failed."""

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(format_step_error(step, cause))


def describe_error(err: Exception) -> str:
    if isinstance(err, CloverApiError):
        return f"Clover API error {err.status_code}: {response_snippet(err.details, 120)}"
    if isinstance(err, StorefrontError):
        return err.message
    return short_error(err)


def format_step_error(step: str, err: Exception) -> str:
    return f"{step}: {describe_error(err)}"[:PRINT_ERROR_MAX]


def _run_step(step: str, fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        raise PosStepError(step, e) from e


def _pos_client(session) -> CloverPosClient:
    merchant_id = _run_step('merchant', clover_auth_service.resolve_merchant_id, session)
    access_token = _run_step('token', clover_auth_service.get_access_token, session, merchant_id)
    return CloverPosClient(merchant_id, access_token)


def sync_order_to_pos(session, order_id: int) -> Dict[str, Any]:
    """
    Create, fill and print the POS ticket for a paid order.

    Returns:
        dict with print_status and clover_pos_order_id

    Raises:
        GatewayError: A step failed (already recorded on the order)
    """
    order = order_service.get_order(session, order_id)
    if not order.is_paid:
        logger.warning(f"[POS] Order {order_id} is not paid; skipping POS sync")
        return {'print_status': order.print_status, 'clover_pos_order_id': order.clover_pos_order_id}
    if order.clover_pos_order_id or order.print_status in (PrintStatus.OK.value, PrintStatus.FAILED.value):
        logger.info(f"[POS] Order {order_id} already synced (print_status={order.print_status}); skipping")
        return {'print_status': order.print_status, 'clover_pos_order_id': order.clover_pos_order_id}

    order_service.record_print_result(session, order_id, PrintStatus.PENDING.value)
    order = order_service.get_order(session, order_id)
    note = build_order_note(order)
    total_cents = order.total_cents
    title = f"Online {order.order_code}"
    pos_order_id = None

    try:
        client = _pos_client(session)

        created = _run_step(
            'create_order',
            client.create_order,
            title,
            note,
            current_app.config.get('CLOVER_ORDER_TYPE_ID'),
        )
        pos_order_id = created.get('id')
        if not pos_order_id:
            raise PosStepError('create_order', ValueError('Clover order id missing'))
        order_service.record_print_result(
            session, order_id, PrintStatus.PENDING.value, clover_pos_order_id=pos_order_id
        )

        _run_step('line_item', client.add_line_item, pos_order_id, total_cents, 'Online Order', note)
        _run_step('print', client.print_order, pos_order_id)
    except PosStepError as e:
        message = str(e)
        logger.error(f"[POS] Sync failed for order {order_id}: {message}")
        pos_sync_total.labels(operation='sync', outcome='failed').inc()
        order_service.record_print_result(session, order_id, PrintStatus.FAILED.value, message)
        raise GatewayError("POS sync failed.", code='POS_SYNC_FAILED', payload={'print_error': message})

    order_service.record_print_result(session, order_id, PrintStatus.OK.value)
    pos_sync_total.labels(operation='sync', outcome='ok').inc()
    logger.info(f"[POS] Order {order_id} synced to Clover order {pos_order_id}")
    return {'print_status': PrintStatus.OK.value, 'clover_pos_order_id': pos_order_id}


def reprint_order(session, order_id: int) -> Dict[str, Any]:
    """
    Re-issue only the print step for an order whose POS ticket already exists.

    Raises:
        ValidationError: The order has no POS order to print
        GatewayError: REPRINT_FAILED (recorded on the order)
    """
    order = order_service.get_order(session, order_id)
    pos_order_id = order.clover_pos_order_id
    if not pos_order_id:
        raise ValidationError("Order has no POS ticket to reprint.", code='NO_POS_ORDER')

    try:
        client = _pos_client(session)
        _run_step('print', client.print_order, pos_order_id)
    except PosStepError as e:
        message = str(e)
        logger.error(f"[POS] Reprint failed for order {order_id}: {message}")
        pos_sync_total.labels(operation='reprint', outcome='failed').inc()
        order_service.record_print_result(session, order_id, PrintStatus.FAILED.value, message)
        raise GatewayError("Reprint failed.", code='REPRINT_FAILED', payload={'print_error': message})

    order_service.record_print_result(session, order_id, PrintStatus.OK.value)
    pos_sync_total.labels(operation='reprint', outcome='ok').inc()
    logger.info(f"[POS] Reprinted order {order_id} (Clover order {pos_order_id})")
    return {'ok': True, 'order_id': order_id, 'print_status': PrintStatus.OK.value,
            'clover_pos_order_id': pos_order_id}
