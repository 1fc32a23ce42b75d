"""QuoteDesk Flask Application Factory"""
import click
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager

from config.database import db, migrate
from config.config import Config


jwt = JWTManager()

# Rendered documents are shown inside the web app's share and preview frames
FRAMEABLE_ENDPOINTS = {
    'public.get_shared_document',
    'quotation.preview_quotation',
    'quotation.render_unsaved',
}


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # CORS with security settings
    CORS(app, resources={
        r"/api/*": {
            "origins": app.config.get('CORS_ORIGINS', ['http://localhost:3000']),
            "methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-CSRF-Token"],
            "supports_credentials": True
        }
    })

    # Security headers
    @app.after_request
    def add_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        if request.endpoint in FRAMEABLE_ENDPOINTS:
            ancestors = ' '.join(["'self'"] + list(app.config.get('CORS_ORIGINS', [])))
            response.headers['Content-Security-Policy'] = f'frame-ancestors {ancestors}'
        else:
            response.headers['X-Frame-Options'] = 'DENY'
        return response

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({'error': 'Token has expired'}), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({'error': 'Invalid token'}), 401

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({'error': 'Authorization token required'}), 401

    @jwt.revoked_token_loader
    def revoked_token_callback(jwt_header, jwt_payload):
        return jsonify({'error': 'Token has been revoked'}), 401

    # Quotation engine errors -> {"success": false, "error", "code"}
    from app.services.exceptions import QuotationEngineError

    @app.errorhandler(QuotationEngineError)
    def handle_engine_error(error):
        db.session.rollback()
        if error.status_code >= 500:
            app.logger.error('%s on %s %s: %s', error.code, request.method, request.path, error.message)
        else:
            app.logger.info('%s on %s %s: %s', error.code, request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.status_code

    # Import models for migrations
    with app.app_context():
        from app import models  # noqa: F401

    # Register blueprints
    from app.routes.organization import organization_bp
    from app.routes.template import template_bp
    from app.routes.quotation import quotation_bp
    from app.routes.public import public_bp

    app.register_blueprint(organization_bp, url_prefix='/api/organizations')
    app.register_blueprint(template_bp, url_prefix='/api/quotations/templates')
    app.register_blueprint(quotation_bp, url_prefix='/api/quotations')
    app.register_blueprint(public_bp, url_prefix='/api/public')

    # Health check endpoint
    @app.route('/api/health')
    def health_check():
        return jsonify({'status': 'healthy', 'app': 'QuoteDesk'})

    register_commands(app)

    return app


def register_commands(app):
    @app.cli.command('expire-quotations')
    @click.option('--org', 'organization_id', type=int, default=None, help='Only this organization')
    def expire_quotations_command(organization_id):
        """Store `expired` on sent quotations past their validity date."""
        from app.services.quotation_lifecycle import expire_overdue
        count = expire_overdue(organization_id=organization_id)
        click.echo(f'Expired {count} quotations')

    @app.cli.command('seed-templates')
    @click.option('--org', 'organization_id', type=int, required=True, help='Organization to seed')
    def seed_templates_command(organization_id):
        """Install the prebuilt quotation templates for an organization."""
        from app.services.template_registry import seed_prebuilt_templates
        created = seed_prebuilt_templates(organization_id)
        click.echo(f'Installed {len(created)} templates')
