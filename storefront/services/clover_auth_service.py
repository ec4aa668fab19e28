"""
Clover merchant credentials.
Resolves which merchant the POS sync targets and hands out an access token,
refreshing the stored OAuth token shortly before it expires.
"""
import logging
from datetime import timedelta
from typing import Dict, Any, Optional
from urllib.parse import urlencode

import requests
from flask import current_app

from storefront.exceptions import ConfigurationError, GatewayError, NotFoundError
from storefront.models import CloverToken
from storefront.utils.dates import utcnow, as_utc

logger = logging.getLogger(__name__)

# Stored expiry is shortened by this much so a token is never used at the edge.
EXPIRY_SKEW_SECONDS = 60


def _client_credentials():
    config = current_app.config
    client_id = config.get('CLOVER_CLIENT_ID')
    client_secret = config.get('CLOVER_CLIENT_SECRET')
    if not client_id or not client_secret:
        raise ConfigurationError("Clover OAuth client is not configured.", code='CLOVER_ENV_MISSING')
    return client_id, client_secret


def _oauth_post(path: str, form: Dict[str, str]) -> Dict[str, Any]:
    base_url = current_app.config.get('CLOVER_OAUTH_BASE_URL', 'https://www.clover.com').rstrip('/')
    try:
        response = requests.post(
            f"{base_url}{path}",
            data=form,
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            timeout=15,
        )
    except requests.RequestException as e:
        logger.error(f"[CLOVER] OAuth request {path} failed: {e}")
        raise GatewayError("Clover OAuth is unavailable.", code='CLOVER_OAUTH_FAILED')

    try:
        data = response.json()
    except ValueError:
        data = {'raw': response.text[:300]}

    if not response.ok:
        logger.error(f"[CLOVER] OAuth {path} failed ({response.status_code}): {str(data)[:300]}")
        raise GatewayError(
            "Clover OAuth request was rejected.",
            code='CLOVER_OAUTH_FAILED',
            payload={'status': response.status_code},
        )
    return data


def expires_at_from(expires_in) -> Optional[Any]:
    try:
        seconds = int(expires_in)
    except (TypeError, ValueError):
        return None
    return utcnow() + timedelta(seconds=max(0, seconds - EXPIRY_SKEW_SECONDS))


def build_authorize_url(state: str) -> str:
    """URL of Clover's consent screen for the merchant install flow."""
    config = current_app.config
    client_id = config.get('CLOVER_CLIENT_ID')
    redirect_uri = config.get('CLOVER_REDIRECT_URI')
    if not client_id or not redirect_uri:
        raise ConfigurationError("Clover OAuth client is not configured.", code='CLOVER_ENV_MISSING')
    base_url = config.get('CLOVER_OAUTH_BASE_URL', 'https://www.clover.com').rstrip('/')
    query = urlencode({'client_id': client_id, 'redirect_uri': redirect_uri, 'state': state})
    return f"{base_url}/oauth/v2/authorize?{query}"


def exchange_code(code: str) -> Dict[str, Any]:
    """
    Trade an authorization code for a token pair.

    Returns:
        dict with merchant_id, access_token, refresh_token, expires_in, scope

    Raises:
        GatewayError: If Clover rejects the exchange or the response is incomplete
    """
    client_id, client_secret = _client_credentials()
    data = _oauth_post('/oauth/v2/token', {
        'client_id': client_id,
        'client_secret': client_secret,
        'code': code,
        'grant_type': 'authorization_code',
        'redirect_uri': current_app.config.get('CLOVER_REDIRECT_URI') or '',
    })

    missing = [key for key in ('merchant_id', 'access_token', 'refresh_token') if not data.get(key)]
    if missing or expires_at_from(data.get('expires_in')) is None:
        raise GatewayError(
            "Clover token response is incomplete.",
            code='TOKEN_RESPONSE_INCOMPLETE',
            payload={'missing': missing},
        )
    return data


def save_token(session, merchant_id: str, access_token: str, refresh_token: str,
               expires_in=None, scope: Optional[str] = None) -> CloverToken:
    """Insert or replace the token pair for a merchant."""
    token = session.query(CloverToken).filter_by(merchant_id=merchant_id).first()
    if token is None:
        token = CloverToken(merchant_id=merchant_id)
        session.add(token)
    token.access_token = access_token
    token.refresh_token = refresh_token
    token.expires_at = expires_at_from(expires_in)
    if scope is not None:
        token.scope = scope
    token.updated_at = utcnow()
    session.commit()
    logger.info(f"[CLOVER] Stored OAuth token for merchant {merchant_id}")
    return token


def resolve_merchant_id(session, preferred: Optional[str] = None) -> str:
    """Configured merchant id, else the merchant of the most recently stored token."""
    preferred = (preferred or current_app.config.get('CLOVER_MERCHANT_ID') or '').strip()
    if preferred:
        return preferred

    token = session.query(CloverToken).order_by(CloverToken.updated_at.desc(), CloverToken.id.desc()).first()
    if token is None or not token.merchant_id:
        raise NotFoundError(
            "No Clover merchant_id available (set CLOVER_MERCHANT_ID or complete OAuth install).",
            code='CLOVER_MERCHANT_MISSING',
        )
    return token.merchant_id


def get_access_token(session, merchant_id: str) -> str:
    """
    Access token for POS calls.

    A static CLOVER_REST_API_TOKEN wins; otherwise the stored OAuth token is
    used, refreshed and persisted when it is within the refresh margin.
    """
    static_token = current_app.config.get('CLOVER_REST_API_TOKEN')
    if static_token:
        return static_token

    token = session.query(CloverToken).filter_by(merchant_id=merchant_id).first()
    if token is None:
        raise NotFoundError(f"No Clover token stored for merchant {merchant_id}", code='CLOVER_TOKEN_MISSING')

    margin = current_app.config.get('CLOVER_TOKEN_REFRESH_MARGIN', 120)
    expires_at = as_utc(token.expires_at)
    if expires_at and expires_at - utcnow() > timedelta(seconds=margin):
        return token.access_token

    logger.info(f"[CLOVER] Refreshing OAuth token for merchant {merchant_id}")
    client_id, client_secret = _client_credentials()
    data = _oauth_post('/oauth/v2/refresh', {
        'client_id': client_id,
        'client_secret': client_secret,
        'grant_type': 'refresh_token',
        'refresh_token': token.refresh_token,
    })
    if not data.get('access_token') or not data.get('refresh_token') or expires_at_from(data.get('expires_in')) is None:
        raise GatewayError("Clover refresh response missing required fields.", code='CLOVER_OAUTH_FAILED')

    save_token(session, merchant_id, data['access_token'], data['refresh_token'], data['expires_in'])
    return data['access_token']
