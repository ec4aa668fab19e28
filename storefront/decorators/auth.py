"""
Route guards.
Admin and staff surfaces are protected by shared-secret tokens (no user
accounts); public write endpoints are rate limited per client IP.
"""

import hmac
from functools import wraps
from flask import current_app, request, g

from storefront.exceptions import UnauthorizedError, ConfigurationError, RateLimitedError


def _token_matches(provided, expected):
    if not provided or not expected:
        return False
    return hmac.compare_digest(str(provided), str(expected))


def admin_token_required(f):
    """
    Decorator: Require the x-admin-token header to match ADMIN_TOKEN.

    Responds 500 when no admin token is configured, 401 when it does not match.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('ADMIN_TOKEN')
        if not expected:
            raise ConfigurationError("Admin access is not configured.", code='ADMIN_TOKEN_MISSING')
        if not _token_matches(request.headers.get('x-admin-token'), expected):
            raise UnauthorizedError()
        g.actor = 'admin'
        return f(*args, **kwargs)

    return decorated_function


def staff_token_required(f):
    """
    Decorator: Require `Authorization: Bearer <STAFF_TOKEN>`.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('STAFF_TOKEN')
        if not expected:
            raise ConfigurationError("Staff access is not configured.", code='STAFF_TOKEN_MISSING')
        header = request.headers.get('Authorization', '')
        scheme, _, token = header.partition(' ')
        if scheme.lower() != 'bearer' or not _token_matches(token.strip(), expected):
            raise UnauthorizedError()
        g.actor = 'staff'
        return f(*args, **kwargs)

    return decorated_function


def client_ip():
    """
    Peer address used as the rate-limit key.

    Behind the production proxy, ProxyFix has already replaced remote_addr
    with the trusted hop's X-Forwarded-For entry; the raw header is client
    controlled and never read here.
    """
    return request.remote_addr or 'unknown'


def rate_limited(route_key, limit_config_key):
    """
    Decorator: Fixed-window limit per client IP for one route.

    Usage:
        @rate_limited('orders', 'RATE_LIMIT_ORDERS')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            limiter = current_app.extensions.get('rate_limiter')
            if limiter is not None:
                limit = int(current_app.config.get(limit_config_key, 0) or 0)
                window = int(current_app.config.get('RATE_LIMIT_WINDOW', 60))
                allowed, retry_after = limiter.hit(route_key, client_ip(), limit, window)
                if not allowed:
                    raise RateLimitedError(retry_after)
            return f(*args, **kwargs)

        return decorated_function
    return decorator
