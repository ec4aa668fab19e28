"""Flask application factory."""
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException, MethodNotAllowed
from storefront.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = app.config.get('JSON_SORT_KEYS', False)

    # Initialize Sentry for error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis rate limiter (fails open when Redis is unreachable)
    from storefront.services.rate_limit_service import init_rate_limiter
    init_rate_limiter(app)

    # Prometheus metrics instrumentation
    from storefront.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=1,      # Trust X-Forwarded-For with 1 proxy
            x_proto=1,    # Trust X-Forwarded-Proto
            x_host=1,     # Trust X-Forwarded-Host
            x_port=1,     # Trust X-Forwarded-Port
            x_prefix=0    # No prefix (not behind a URL prefix)
        )

    # Initialize database
    init_db(app)

    # Error Handlers
    from storefront.exceptions import StorefrontError, RateLimitedError

    @app.errorhandler(StorefrontError)
    def handle_storefront_error(error):
        """Render application exceptions as {"error": {...}}."""
        if error.status_code >= 500:
            app.logger.error(f"StorefrontError [{error.status_code}] {error.code}: {error.message}")
        else:
            app.logger.info(f"StorefrontError [{error.status_code}] {error.code}: {error.message}")

        response = jsonify(error.to_dict())
        response.status_code = error.status_code
        if isinstance(error, RateLimitedError):
            response.headers['Retry-After'] = str(error.retry_after)
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        code = (error.name or 'error').upper().replace(' ', '_')
        response = jsonify({'error': {'code': code, 'message': error.description or error.name}})
        response.status_code = error.code or 500
        if isinstance(error, MethodNotAllowed) and error.valid_methods:
            response.headers['Allow'] = ', '.join(sorted(error.valid_methods))
        return response

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception on {request.method} {request.path}: {error}")
        response = jsonify({'error': {'code': 'INTERNAL_ERROR', 'message': 'Internal Server Error'}})
        response.status_code = 500
        return response

    # Register blueprints
    from storefront.blueprints.storefront import storefront_bp
    from storefront.blueprints.payments import payments_bp
    from storefront.blueprints.admin import admin_bp
    from storefront.blueprints.staff import staff_bp
    from storefront.blueprints.clover import clover_bp
    from storefront.blueprints.metrics import metrics_bp

    app.register_blueprint(storefront_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(clover_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from storefront.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
