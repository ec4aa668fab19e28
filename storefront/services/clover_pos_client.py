"""Clover REST (POS) client: ticket creation and kitchen printing."""
import logging
from typing import Dict, Any, Optional

from flask import current_app

from storefront.services.clover_ecomm_client import clover_request

logger = logging.getLogger(__name__)


class CloverPosClient:
    """Cliente para la API REST v3 de Clover (órdenes POS e impresión)."""

    def __init__(self, merchant_id: str, access_token: str, base_url: Optional[str] = None,
                 timeout: Optional[float] = None):
        config = current_app.config
        self.merchant_id = merchant_id
        self.access_token = access_token
        self.base_url = (base_url or config.get('CLOVER_REST_BASE_URL', 'https://api.clover.com')).rstrip('/')
        self.timeout = timeout or config.get('CLOVER_POS_TIMEOUT', 15)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/v3/merchants/{self.merchant_id}{path}"

    def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        return clover_request('POST', self._url(path), self.access_token, payload, timeout=self.timeout)

    def create_order(self, title: str, note: Optional[str] = None,
                     order_type_id: Optional[str] = None) -> Dict[str, Any]:
        """Open a POS order. Returns the Clover order (with its id)."""
        body = {'state': 'open', 'title': title or 'Online Order'}
        if note:
            body['note'] = note
        if order_type_id:
            body['orderType'] = {'id': order_type_id}
        return self._post('/orders', body) or {}

    def add_line_item(self, clover_order_id: str, price_cents: int, name: str = 'Online Order',
                      note: Optional[str] = None) -> Dict[str, Any]:
        """Attach a single line item carrying the full order total."""
        body = {'name': name, 'price': int(price_cents), 'unitQty': 1}
        if note:
            body['note'] = note
        return self._post(f"/orders/{clover_order_id}/line_items", body) or {}

    def print_order(self, clover_order_id: str) -> Dict[str, Any]:
        """Request a print event for an existing POS order."""
        logger.info(f"[POS] Print event for Clover order {clover_order_id}")
        return self._post('/print_event', {'orderRef': {'id': clover_order_id}}) or {}
