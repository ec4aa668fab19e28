"""Twilio Messages API client."""
import logging
from typing import Dict, Any, Optional

import requests
from flask import current_app

from storefront.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class SmsSendError(Exception):
    """Twilio rejected the message or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TwilioClient:
    """Cliente mínimo para enviar SMS vía la API REST de Twilio."""

    def __init__(self, account_sid: Optional[str] = None, auth_token: Optional[str] = None,
                 from_number: Optional[str] = None, base_url: Optional[str] = None):
        config = current_app.config
        self.account_sid = account_sid or config.get('TWILIO_ACCOUNT_SID')
        self.auth_token = auth_token or config.get('TWILIO_AUTH_TOKEN')
        self.from_number = from_number or config.get('TWILIO_PHONE_NUMBER')
        if not self.account_sid or not self.auth_token or not self.from_number:
            raise ConfigurationError("SMS provider is not configured.", code='TWILIO_ENV_MISSING')
        self.base_url = (base_url or config.get('TWILIO_BASE_URL', 'https://api.twilio.com')).rstrip('/')

    def send(self, to: str, body: str) -> Dict[str, Any]:
        """
        Send one SMS.

        Returns:
            Twilio message resource (sid, status...)

        Raises:
            SmsSendError: On transport failure or a non-2xx response
        """
        url = f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"
        try:
            response = requests.post(
                url,
                data={'From': self.from_number, 'To': to, 'Body': body},
                auth=(self.account_sid, self.auth_token),
                timeout=10,
            )
        except requests.RequestException as e:
            raise SmsSendError(f"Twilio request failed: {e}")

        if not response.ok:
            raise SmsSendError(
                f"Twilio error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError:
            return {}
