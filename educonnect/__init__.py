import logging

from flask import Flask
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from educonnect.config import Config

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
cors = CORS()


def create_app(config_overrides=None):
    app = Flask(__name__)

    # 1. Configuration (environment first, then explicit overrides for tests)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # 2. Logging
    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    # 3. Initialize Plugins
    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})

    # 4. Register Blueprints (Routes)
    from educonnect.routes import routes
    app.register_blueprint(routes)

    from educonnect.errors import register_error_handlers
    register_error_handlers(app)

    # 5. Create Database Tables (if they don't exist)
    with app.app_context():
        from educonnect import models  # noqa: F401
        db.create_all()

    return app
