"""
Clover OAuth Blueprint.
Merchant install flow: /clover/connect redirects to Clover's consent screen,
/clover/callback exchanges the code and stores the token pair.
"""

import hmac
import logging
import secrets
from urllib.parse import quote

from flask import Blueprint, redirect, request, current_app

from storefront.database import get_session
from storefront.exceptions import ValidationError
from storefront.services import clover_auth_service

logger = logging.getLogger(__name__)

clover_bp = Blueprint('clover', __name__, url_prefix='/clover')

STATE_COOKIE = 'clover_oauth_state'
STATE_MAX_AGE = 600


@clover_bp.route('/connect', methods=['GET'])
def connect():
    state = secrets.token_hex(16)
    response = redirect(clover_auth_service.build_authorize_url(state), code=302)
    response.set_cookie(
        STATE_COOKIE, state,
        max_age=STATE_MAX_AGE, httponly=True, samesite='Lax', path='/',
        secure=not current_app.config.get('TESTING') and not current_app.debug,
    )
    return response


@clover_bp.route('/callback', methods=['GET'])
def callback():
    code = (request.args.get('code') or '').strip()
    if not code:
        raise ValidationError("Missing code.", code='MISSING_CODE')

    state = (request.args.get('state') or '').strip()
    expected = request.cookies.get(STATE_COOKIE) or ''
    if not state or not expected or not hmac.compare_digest(state, expected):
        logger.warning("[CLOVER] OAuth callback with invalid state")
        raise ValidationError("Invalid OAuth state.", code='INVALID_OAUTH_STATE')

    data = clover_auth_service.exchange_code(code)
    clover_auth_service.save_token(
        get_session(),
        data['merchant_id'],
        data['access_token'],
        data['refresh_token'],
        data.get('expires_in'),
        data.get('scope'),
    )

    success_url = current_app.config.get('CLOVER_OAUTH_SUCCESS_URL') or '/admin.html?clover=connected'
    join_char = '&' if '?' in success_url else '?'
    response = redirect(f"{success_url}{join_char}merchant_id={quote(data['merchant_id'])}", code=302)
    response.delete_cookie(STATE_COOKIE, path='/')
    return response
