"""
app.py — Flask entry point for the garden bed conductor.

Initializes the Flask app, registers the planning and export
blueprints, and calls init_db() and seed_defaults() on startup.

Run: python app.py → localhost:5000
"""

import os
from flask import Flask
from flask_wtf.csrf import CSRFProtect

from database import init_db, seed_defaults
from routes.conductor import conductor_bp
from routes.export import export_bp


def create_app(test_config=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.secret_key = os.environ.get('SECRET_KEY', 'garden-conductor-local-app-secret-key')
    app.config['WTF_CSRF_CHECK_DEFAULT'] = True

    if test_config:
        app.config.update(test_config)

    CSRFProtect(app)

    # Ensure the data directory exists
    base_dir = os.path.dirname(os.path.abspath(__file__))
    os.makedirs(os.path.join(base_dir, 'data'), exist_ok=True)

    # Initialize database and seed defaults
    with app.app_context():
        init_db()
        try:
            seed_defaults()
        except Exception as e:
            print(f"Warning: Could not seed default data: {e}")

    app.register_blueprint(conductor_bp)
    app.register_blueprint(export_bp)

    return app


if __name__ == '__main__':
    app = create_app()
    # Debug mode: enabled by default for development (auto-reload on file changes)
    # Set FLASK_DEBUG=0 to disable for production
    debug = os.environ.get('FLASK_DEBUG', '1') != '0'
    app.run(host='localhost', port=5000, debug=debug)
