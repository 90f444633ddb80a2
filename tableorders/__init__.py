"""Flask application factory."""
from flask import Flask, jsonify
from tableorders.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Production: trust X-Forwarded-* from the reverse proxy
    if app.config.get('ENV') == 'production' or app.config.get('FLASK_ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Load the acting user for each request
    from tableorders.middleware import load_user

    @app.before_request
    def before_request_handler():
        """Load user context for each request."""
        load_user()

    # Error Handlers
    from tableorders.exceptions import TableOrdersError

    @app.errorhandler(TableOrdersError)
    def handle_table_orders_error(error):
        """Handle application exceptions as JSON."""
        if error.status_code >= 500:
            app.logger.error(f"TableOrdersError [{error.status_code}] {error.kind}: {error.message}")
        else:
            app.logger.warning(f"TableOrdersError [{error.status_code}] {error.kind}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'kind': 'not_found', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'kind': 'method_not_allowed', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'kind': 'internal', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from tableorders.blueprints.main import main_bp
    from tableorders.blueprints.auth import auth_bp
    from tableorders.blueprints.menu import menu_bp
    from tableorders.blueprints.companies import companies_bp
    from tableorders.blueprints.table_sessions import table_sessions_bp
    from tableorders.blueprints.part_orders import part_orders_bp
    from tableorders.blueprints.orders import orders_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(menu_bp)
    app.register_blueprint(companies_bp)
    app.register_blueprint(table_sessions_bp)
    app.register_blueprint(part_orders_bp)
    app.register_blueprint(orders_bp)

    # Register CLI commands
    from tableorders.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(
        f"PAYMENT_PROVIDER={app.config.get('PAYMENT_PROVIDER')} "
        f"STRICT_STATUS_TRANSITIONS={app.config.get('STRICT_STATUS_TRANSITIONS')}"
    )

    return app
