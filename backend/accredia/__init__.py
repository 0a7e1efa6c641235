"""
Flask Application Factory for the Accredia accreditation backend.

The create_app() function initializes the Flask application with:
- Configuration loading
- Database, migrations, Redis and Celery setup
- JWT authentication with a Redis token blocklist
- CORS configuration
- Tenant subdomain routing
- Blueprint registration for all API routes
- Error handlers
- Logging configuration
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from flask.logging import default_handler
from werkzeug.exceptions import HTTPException

from accredia.config import config
from accredia.extensions import db, migrate, jwt, cors, redis_manager
from accredia.utils.responses import error_response, internal_error
from accredia.utils.tenant_routing import TenantRoutingMiddleware


def create_app(config_name=None):
    """
    Application factory function to create and configure Flask app instance.

    Args:
        config_name: Configuration name ('development', 'production', 'testing')
                    If None, uses FLASK_ENV environment variable or defaults to 'development'

    Returns:
        Flask: Configured Flask application instance

    Example:
        app = create_app('testing')
    """
    app = Flask(__name__)

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    config_class = config.get(config_name, config['default'])
    app.config.from_object(config_class)
    config_class.init_app(app)

    configure_logging(app)
    initialize_extensions(app)
    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)

    app.wsgi_app = TenantRoutingMiddleware(
        app.wsgi_app,
        main_domain=app.config.get('MAIN_DOMAIN', 'accredia.cl'),
        skip_prefixes=app.config.get('TENANT_ROUTING_SKIP_PREFIXES'),
    )

    app.logger.info(f"Flask app created with config: {config_name}")
    app.logger.info(f"Debug mode: {app.config.get('DEBUG')}")

    return app


def initialize_extensions(app):
    """
    Initialize Flask extensions with the app instance.

    Extensions initialized:
        - SQLAlchemy (db) and Flask-Migrate (migrate)
        - Flask-JWT-Extended (jwt)
        - Flask-CORS (cors)
        - RedisManager: token blocklist and rate limiting (optional)
        - Celery: email and maintenance tasks bound to the app context
    """
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    cors.init_app(
        app,
        origins=app.config.get('CORS_ORIGINS', ['http://localhost:3000']),
        supports_credentials=app.config.get('CORS_ALLOW_CREDENTIALS', True),
        max_age=app.config.get('CORS_MAX_AGE', 3600),
        allow_headers=['Content-Type', 'Authorization', 'Stripe-Signature'],
        methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
    )

    redis_manager.init_app(app)

    from accredia.models.base import register_base_model_events
    register_base_model_events(db)

    from accredia.tasks.celery_app import celery_app, init_celery
    init_celery(celery_app, app)

    configure_jwt(app)

    app.logger.info("Extensions initialized: db, migrate, jwt, cors, redis, celery")


def configure_jwt(app):
    """
    Configure JWT-related callbacks and handlers.

    Routes protected with flask_jwt_extended's own jwt_required (the refresh
    endpoint) get these JSON errors; the custom decorators answer on their own.
    """
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return error_response('TOKEN_EXPIRED', 'El token expiró. Inicia sesión nuevamente.', status_code=401)

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return error_response('INVALID_TOKEN', 'Token inválido', status_code=401)

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return error_response('UNAUTHORIZED', 'No autenticado', status_code=401)

    @jwt.revoked_token_loader
    def revoked_token_callback(jwt_header, jwt_payload):
        return error_response('TOKEN_REVOKED', 'Token revocado', status_code=401)

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        """Check the Redis blocklist for the token's jti."""
        from accredia.services.auth_service import AuthService
        jti = jwt_payload.get('jti')
        if jti:
            return AuthService.is_token_blacklisted(jti)
        return False


def register_blueprints(app):
    """
    Register Flask blueprints for API routes.

    The public blueprint is registered last: its /<slug> routes only match
    what no API route claimed.
    """
    from accredia.routes import (
        auth_bp, tenants_bp, profiles_bp, teams_bp, events_bp, quotas_bp, registrations_bp, bulk_bp,
        qr_bp, invitations_bp, email_bp, export_bp, billing_bp, uploads_bp, superadmin_bp, public_bp,
    )

    for blueprint in (auth_bp, tenants_bp, profiles_bp, teams_bp, events_bp, quotas_bp, registrations_bp,
                      bulk_bp, qr_bp, invitations_bp, email_bp, export_bp, billing_bp, uploads_bp,
                      superadmin_bp, public_bp):
        app.register_blueprint(blueprint)
        app.logger.debug(f"Registered blueprint: {blueprint.name} ({blueprint.url_prefix or '/'})")

    @app.route('/health')
    def health_check():
        """Health check endpoint for monitoring."""
        return jsonify({
            'status': 'healthy',
            'service': 'Accredia Backend',
            'redis': redis_manager.is_enabled(),
        }), 200

    @app.route('/')
    def index():
        """Root endpoint with API information."""
        return jsonify({
            'service': 'Accredia Backend',
            'status': 'running',
            'endpoints': {
                'health': '/health',
                'auth': '/api/auth',
                'tenants': '/api/tenants',
                'events': '/api/events',
                'registrations': '/api/registrations',
                'qr': '/api/qr',
                'billing': '/api/billing',
            }
        }), 200


def register_error_handlers(app):
    """
    Register global error handlers for the application.

    Handles common HTTP errors and exceptions with the same JSON envelope
    as the route helpers in accredia.utils.responses.
    """
    @app.errorhandler(400)
    def bad_request(error):
        return error_response('BAD_REQUEST', str(getattr(error, 'description', None) or 'Solicitud inválida'),
                              status_code=400)

    @app.errorhandler(401)
    def unauthorized(error):
        return error_response('UNAUTHORIZED', 'No autenticado', status_code=401)

    @app.errorhandler(403)
    def forbidden(error):
        return error_response('FORBIDDEN', 'Acceso denegado', status_code=403)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('NOT_FOUND', 'Recurso no encontrado', status_code=404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('METHOD_NOT_ALLOWED', 'Método no permitido', status_code=405)

    @app.errorhandler(413)
    def payload_too_large(error):
        return error_response('PAYLOAD_TOO_LARGE', 'El archivo es demasiado grande', status_code=413)

    @app.errorhandler(500)
    def internal_server_error(error):
        app.logger.error(f"Internal Server Error: {error}")
        return internal_error()

    @app.errorhandler(Exception)
    def handle_exception(error):
        if isinstance(error, HTTPException):
            return error_response(error.name.upper().replace(" ", "_"), error.description or error.name,
                                  status_code=error.code)
        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return internal_error()


def configure_logging(app):
    """
    Configure application logging.

    Sets up console logging and, when LOG_FILE is set, a rotating file
    handler. Handlers go on the 'accredia' logger so module loggers
    (logging.getLogger(__name__)) share them.

    Configuration:
        - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        - LOG_FORMAT: Log message format
        - LOG_FILE: Path to log file
        - LOG_MAX_BYTES: Maximum log file size before rotation
        - LOG_BACKUP_COUNT: Number of backup log files to keep
    """
    app.logger.removeHandler(default_handler)

    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper())
    formatter = logging.Formatter(
        app.config.get('LOG_FORMAT', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    package_logger = logging.getLogger('accredia')
    package_logger.setLevel(log_level)
    app.logger.setLevel(log_level)

    if not package_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

        log_file = app.config.get('LOG_FILE')
        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir and not os.path.exists(log_dir):
                os.makedirs(log_dir, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=app.config.get('LOG_MAX_BYTES', 10485760),  # 10MB
                backupCount=app.config.get('LOG_BACKUP_COUNT', 5)
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)

    app.logger.info(f"Logging configured: level={log_level}, file={app.config.get('LOG_FILE')}")


def register_shell_context(app):
    """Make db and the main models available in `flask shell`."""
    @app.shell_context_processor
    def make_shell_context():
        from accredia import models

        return {
            'db': db,
            'User': models.User,
            'Tenant': models.Tenant,
            'Event': models.Event,
            'Profile': models.Profile,
            'Registration': models.Registration,
            'Plan': models.Plan,
        }
