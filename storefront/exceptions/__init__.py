"""Custom exceptions for the storefront ordering API."""


class StorefrontError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, code='INTERNAL_ERROR', payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.payload = payload

    def to_dict(self):
        error = dict(self.payload or ())
        error['code'] = self.code
        error['message'] = self.message
        return {'error': error}


class ValidationError(StorefrontError):
    """Client-correctable request errors."""
    def __init__(self, message, code='VALIDATION_ERROR', payload=None):
        super().__init__(message, 400, code, payload)


class UnauthorizedError(StorefrontError):
    """Raised when a shared-secret token is missing or wrong."""
    def __init__(self, message="Unauthorized", code='UNAUTHORIZED'):
        super().__init__(message, 401, code)


class NotFoundError(StorefrontError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", code='NOT_FOUND'):
        super().__init__(message, 404, code)


class PaymentRequiredError(StorefrontError):
    """Payment guard or provider decline; carries a machine-readable reason."""

    MISSING_PAYMENT_TOKEN = 'MISSING_PAYMENT_TOKEN'
    INVALID_TOTAL = 'INVALID_TOTAL'
    ORDER_ALREADY_PAID = 'ORDER_ALREADY_PAID'
    ORDER_NOT_FOUND = 'ORDER_NOT_FOUND'
    PAYMENT_DECLINED = 'PAYMENT_DECLINED'

    def __init__(self, reason, message="Payment required", order_id=None,
                 computed_total_cents=None, client_total_cents=None, is_paid=None):
        self.reason = reason
        payload = {
            'reason': reason,
            'order_id': order_id,
            'computed_total_cents': computed_total_cents,
            'client_total_cents': client_total_cents,
            'is_paid': is_paid,
        }
        super().__init__(message, 402, 'PAYMENT_REQUIRED', payload)


class RateLimitedError(StorefrontError):
    """Raised when a client exceeds the request budget for a route."""
    def __init__(self, retry_after):
        self.retry_after = retry_after
        super().__init__("Too many requests. Please try again soon.", 429, 'RATE_LIMITED')


class ConfigurationError(StorefrontError):
    """Server misconfiguration (missing credentials, coordinates...)."""
    def __init__(self, message="Server configuration error.", code='SERVER_CONFIG_ERROR'):
        super().__init__(message, 500, code)


class PersistenceError(StorefrontError):
    """A write the caller depends on could not be stored."""
    def __init__(self, message, code='PERSISTENCE_ERROR', payload=None):
        super().__init__(message, 500, code, payload)


class GatewayError(StorefrontError):
    """Upstream provider failure (network, timeout, unexpected response)."""
    def __init__(self, message="Upstream service unavailable.", code='GATEWAY_ERROR', payload=None):
        super().__init__(message, 502, code, payload)
