import os
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate, upgrade
from dotenv import load_dotenv

# Load environment variables (override=True ensures .env values take precedence)
load_dotenv(override=True)

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def create_app(test_config=None):
    """Application factory pattern."""
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///dev.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Review aggregation: optimistic retries per rated entity before giving up
    app.config['AGGREGATION_MAX_ATTEMPTS'] = int(os.environ.get('AGGREGATION_MAX_ATTEMPTS', 5))

    # Chat: how long a client idempotency token deduplicates retried sends
    app.config['IDEMPOTENCY_RETENTION_HOURS'] = float(os.environ.get('IDEMPOTENCY_RETENTION_HOURS', 24))
    app.config['MESSAGE_PAGE_SIZE'] = int(os.environ.get('MESSAGE_PAGE_SIZE', 100))

    # Roommate matching weights (should sum to 1.0)
    app.config['MATCH_WEIGHT_BUDGET'] = float(os.environ.get('MATCH_WEIGHT_BUDGET', 0.3))
    app.config['MATCH_WEIGHT_LOCATION'] = float(os.environ.get('MATCH_WEIGHT_LOCATION', 0.25))
    app.config['MATCH_WEIGHT_LIFESTYLE'] = float(os.environ.get('MATCH_WEIGHT_LIFESTYLE', 0.25))
    app.config['MATCH_WEIGHT_PREFERENCES'] = float(os.environ.get('MATCH_WEIGHT_PREFERENCES', 0.2))
    app.config['MATCH_DEFAULT_LIMIT'] = int(os.environ.get('MATCH_DEFAULT_LIMIT', 20))

    if test_config:
        app.config.update(test_config)

    # Fix for postgres:// vs postgresql:// (some providers use older postgres:// format)
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('postgres://'):
        app.config['SQLALCHEMY_DATABASE_URI'] = app.config['SQLALCHEMY_DATABASE_URI'].replace(
            'postgres://', 'postgresql://', 1
        )

    # SQLite connections are shared across request threads through the pool
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
        engine_options = app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {})
        connect_args = engine_options.setdefault('connect_args', {})
        connect_args.setdefault('check_same_thread', False)
        connect_args.setdefault('timeout', 30)

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)

    # Register blueprints
    from bachelorbuddy.routes.api import api_bp
    app.register_blueprint(api_bp)

    # Maintenance commands (flask recompute-ratings, flask purge-idempotency-tokens)
    from bachelorbuddy.commands import register_commands
    register_commands(app)

    # Import models so they're known to Flask-Migrate
    from bachelorbuddy import models

    # Auto-run migrations in production (Railway)
    if os.environ.get('RAILWAY_ENVIRONMENT'):
        with app.app_context():
            upgrade()

    return app
