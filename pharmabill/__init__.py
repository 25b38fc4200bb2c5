"""Flask application factory."""
import logging

from flask import Flask, jsonify, request

from pharmabill.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    # Initialize database
    init_db(app)

    # Blueprints
    from pharmabill.blueprints.sales import sales_bp
    app.register_blueprint(sales_bp)

    # CLI
    from pharmabill.cli_commands import init_cli_commands
    init_cli_commands(app)

    # Error Handlers
    from pharmabill.exceptions import PharmaError

    @app.errorhandler(PharmaError)
    def handle_pharma_error(error):
        """Handle custom application exceptions."""
        app.logger.error(f"PharmaError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception on {request.path}: {error}", exc_info=True)
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    return app
