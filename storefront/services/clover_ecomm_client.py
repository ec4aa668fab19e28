"""Clover eCommerce API client (card capture)."""
import logging
import uuid
from typing import Dict, Any, Optional

import requests
from flask import current_app

from storefront.exceptions import ConfigurationError, GatewayError

logger = logging.getLogger(__name__)


class CloverApiError(Exception):
    """Non-2xx response from a Clover API."""

    def __init__(self, status_code: int, details: Any):
        super().__init__(f"Clover API error {status_code}")
        self.status_code = status_code
        self.details = details

    @property
    def provider_code(self) -> Optional[str]:
        """Decline / error code reported by Clover, when present."""
        details = self.details if isinstance(self.details, dict) else {}
        error = details.get('error')
        if isinstance(error, dict):
            return error.get('decline_code') or error.get('code') or error.get('type')
        if isinstance(error, str):
            return error
        return details.get('code') or details.get('message')


def new_idempotency_key() -> str:
    """Fresh key per network attempt; keys are never reused across retries."""
    return str(uuid.uuid4())


def response_snippet(value, limit: int = 300) -> str:
    if value is None:
        return ''
    return str(value)[:limit]


def clover_request(method: str, url: str, access_token: str, payload: Optional[Dict[str, Any]] = None,
                   timeout: float = 15, headers: Optional[Dict[str, str]] = None) -> Any:
    """
    Perform a Clover API call and decode the JSON body.

    Raises:
        CloverApiError: Clover answered with a non-2xx status
        requests.RequestException: Transport failure or timeout
    """
    request_headers = {
        'Authorization': f'Bearer {access_token}',
        'Content-Type': 'application/json',
        'Accept': 'application/json',
    }
    if headers:
        request_headers.update(headers)

    response = requests.request(method, url, json=payload, headers=request_headers, timeout=timeout)

    try:
        data = response.json() if response.content else None
    except ValueError:
        data = {'raw': response.text}

    if not response.ok:
        raise CloverApiError(response.status_code, data)
    return data


class CloverEcommClient:
    """Cliente para la API de eCommerce de Clover (órdenes y cobros)."""

    def __init__(self, private_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None):
        """
        Initialize Clover eCommerce client.

        Args:
            private_key: eCommerce private key. If None, reads CLOVER_ECOMM_PRIVATE_KEY
            base_url: API root. If None, reads CLOVER_ECOMM_BASE_URL
            timeout: Round-trip budget per call, seconds
        """
        config = current_app.config
        self.private_key = private_key or config.get('CLOVER_ECOMM_PRIVATE_KEY')
        if not self.private_key:
            raise ConfigurationError("Payment provider credentials are not configured.", code='CLOVER_ENV_MISSING')
        self.base_url = (base_url or config.get('CLOVER_ECOMM_BASE_URL', 'https://scl.clover.com')).rstrip('/')
        self.timeout = timeout or config.get('CLOVER_CHARGE_TIMEOUT', 20)

    def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        return clover_request(
            'POST',
            f"{self.base_url}{path}",
            self.private_key,
            payload,
            timeout=self.timeout,
            headers={'Idempotency-Key': new_idempotency_key()},
        )

    def create_order(self, payload: Dict[str, Any]) -> str:
        """
        Create the remote order a charge is submitted against.

        Returns:
            Clover order id

        Raises:
            GatewayError: On transport failure, error status or a missing id
        """
        logger.info(f"[CLOVER] Creating eComm order ref={payload.get('external_reference_id')}")
        try:
            data = self._post('/v1/orders', payload)
        except requests.RequestException as e:
            logger.error(f"[CLOVER] eComm order create transport error: {e}")
            raise GatewayError("Payment provider is unavailable. Please try again.", code='PAYMENT_GATEWAY_ERROR')
        except CloverApiError as e:
            logger.error(
                f"[CLOVER] eComm order create failed (status={e.status_code}): {response_snippet(e.details)}"
            )
            raise GatewayError("Payment provider rejected the order. Please try again.", code='PAYMENT_GATEWAY_ERROR')

        data = data or {}
        order_id = data.get('id') or (data.get('order') or {}).get('id') or (data.get('data') or {}).get('id')
        if not order_id:
            logger.error(f"[CLOVER] eComm order id missing: {response_snippet(data)}")
            raise GatewayError("Payment provider returned an invalid response.", code='PAYMENT_GATEWAY_ERROR')
        return order_id

    def pay_order(self, clover_order_id: str, amount_cents: int, source: str, description: str,
                  email: Optional[str] = None) -> Dict[str, Any]:
        """
        Charge a tokenized card against a remote order.

        Never retried: a timeout or transport error surfaces as GatewayError and
        the customer retries the whole checkout.

        Returns:
            Provider response body (contains the payment id)

        Raises:
            CloverApiError: The charge was declined or rejected
            GatewayError: Transport failure or timeout
        """
        payload = {
            'amount': int(amount_cents),
            'currency': 'USD',
            'source': source,
            'description': description,
        }
        if email:
            payload['email'] = email

        logger.info(f"[CLOVER] Paying eComm order {clover_order_id} amount={amount_cents}")
        try:
            return self._post(f"/v1/orders/{clover_order_id}/pay", payload) or {}
        except requests.Timeout:
            logger.error(f"[CLOVER] Charge timed out for eComm order {clover_order_id}")
            raise GatewayError(
                "Payment confirmation timed out. Please check before retrying.",
                code='PAYMENT_TIMEOUT',
            )
        except requests.RequestException as e:
            logger.error(f"[CLOVER] Charge transport error for eComm order {clover_order_id}: {e}")
            raise GatewayError("Payment provider is unavailable. Please try again.", code='PAYMENT_GATEWAY_ERROR')
