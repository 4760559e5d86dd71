"""
Statbill Application Factory.
Creates and configures the Flask application instance.
"""
import os
import json
import logging
import secrets
import uuid
from datetime import datetime, timezone

import click
from flask import Flask, render_template, request, g

from statbill.config import config
from statbill.extensions import init_extensions, db


def _init_sentry(app):
    """Initialize Sentry error tracking for production."""
    dsn = app.config.get('SENTRY_DSN') or os.environ.get('SENTRY_DSN')
    if not dsn:
        app.logger.info('SENTRY_DSN not set, error tracking disabled.')
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
        environment=os.environ.get('FLASK_ENV', 'production'),
        send_default_pii=False,
    )
    app.logger.info('Sentry error tracking initialized.')


def create_app(config_name=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)

    Returns:
        Configured Flask application instance
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize Sentry (production only)
    if config_name == 'production':
        _init_sentry(app)

    # Call init_app if available (production validation happens here)
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Initialize extensions
    init_extensions(app)

    # Enable response compression (gzip)
    from flask_compress import Compress
    Compress(app)

    # Initialize Stripe API key
    if app.config.get('STRIPE_SECRET_KEY'):
        import stripe
        stripe.api_key = app.config['STRIPE_SECRET_KEY']

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Register context processors
    register_context_processors(app)

    # Register template filters
    register_template_filters(app)

    # Configure logging
    configure_logging(app)

    # Add security headers
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_blueprints(app):
    """Register all application blueprints."""
    from statbill.blueprints.billing import billing_bp

    app.register_blueprint(billing_bp, url_prefix='/billing')


def _wants_json():
    """Check if the client asked for a JSON response."""
    return request.accept_mimetypes.best == 'application/json'


def register_error_handlers(app):
    """Register error handlers for common HTTP errors."""
    from flask import jsonify

    @app.errorhandler(403)
    def forbidden(error):
        if _wants_json():
            return jsonify({'error': {'code': 'forbidden', 'message': 'Access denied.'}}), 403
        return render_template('errors/403.html'), 403

    @app.errorhandler(404)
    def not_found(error):
        if _wants_json():
            return jsonify({'error': {'code': 'not_found', 'message': 'Resource not found.'}}), 404
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        request_id = g.get('request_id', '-')
        app.logger.error('500 Internal Server Error: %s (request_id=%s)', type(error).__name__, request_id, exc_info=True)
        if _wants_json():
            return jsonify({'error': {'code': 'internal_error', 'message': 'Internal server error.', 'request_id': request_id}}), 500
        return render_template('errors/500.html', request_id=request_id), 500

    @app.errorhandler(429)
    def ratelimit_error(error):
        if _wants_json():
            return jsonify({'error': {'code': 'rate_limit_exceeded', 'message': 'Too many requests. Try again later.'}}), 429
        return render_template('errors/429.html'), 429


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        print("Database tables created.")

    @app.cli.command('check-usage')
    @click.option('--dry-run', is_flag=True, help='Preview without sending emails or locking dashboards')
    def check_usage(dry_run):
        """Warn subscribers over their pageview allowance and lock expired grace periods."""
        from statbill.services.usage_check_service import UsageCheckService

        print("=" * 50)
        print("USAGE CHECK")
        print("=" * 50)

        if dry_run:
            print("[DRY RUN] No email will be sent, nothing will be saved")
            print()

        report = UsageCheckService.run(dry_run=dry_run)

        # Summary
        print()
        print("=" * 50)
        print("SUMMARY")
        print("=" * 50)
        print(f"Subscriptions checked: {report['checked']}")
        print(f"Over-limit warnings: {report['over_limit']}")
        print(f"Enterprise alerts: {report['enterprise_alerts']}")
        print(f"Dashboards locked: {report['locked']}")
        print(f"Grace periods cleared: {report['grace_cleared']}")


def register_template_filters(app):
    """Register formatting filters used by pages and emails."""
    from statbill.utils.text import (
        delimit_integer, format_date_range, format_price, large_number_format,
    )

    app.add_template_filter(delimit_integer, 'delimit_integer')
    app.add_template_filter(large_number_format, 'large_number_format')
    app.add_template_filter(format_price, 'format_price')
    app.add_template_filter(format_date_range, 'format_date_range')


def register_context_processors(app):
    """Register template context processors."""

    @app.context_processor
    def utility_processor():
        return {
            'app_name': app.config.get('APP_NAME', 'Statbill'),
            'contact_url': app.config.get('CONTACT_URL'),
            'billing_faq_url': app.config.get('BILLING_FAQ_URL'),
            'csp_nonce': g.get('csp_nonce', ''),
        }


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud platforms)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        try:
            log_entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # Outside request context
        # Add exception info
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout (for cloud log aggregation).
    Development: plain text.
    """
    if app.testing:
        return

    @app.after_request
    def log_request(response):
        if request.path.startswith('/static'):
            return response
        app.logger.info('%s %s %s', request.method, request.path, response.status_code)
        return response

    if not app.debug:
        # Production: JSON to stdout
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(logging.INFO)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(logging.INFO)

        # Service modules log through their own loggers
        statbill_logger = logging.getLogger('statbill')
        statbill_logger.handlers.clear()
        statbill_logger.addHandler(stream_handler)
        statbill_logger.setLevel(logging.INFO)

        app.logger.info('Statbill startup (JSON logging)')
    else:
        # Development: plain text
        app.logger.setLevel(logging.DEBUG)
        logging.getLogger('statbill').setLevel(logging.DEBUG)
        app.logger.info('Statbill startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])
        g.csp_nonce = secrets.token_urlsafe(16)

    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        if request.path.startswith('/static'):
            response.headers['Cache-Control'] = 'public, max-age=31536000, immutable'
            return response

        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Clickjacking protection
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'

        # Referrer policy
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        # HSTS - Force HTTPS (1 year, include subdomains)
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # Content Security Policy (nonce-based for scripts)
        if not app.debug:
            nonce = g.get('csp_nonce', '')
            response.headers['Content-Security-Policy'] = (
                "default-src 'self'; "
                f"script-src 'self' 'nonce-{nonce}'; "
                "style-src 'self' 'unsafe-inline'; "
                "img-src 'self' data: https:; "
                "frame-ancestors 'self';"
            )

        return response
