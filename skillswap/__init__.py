import logging

import click
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_socketio import SocketIO
from sqlalchemy.exc import SQLAlchemyError

# Initialize extensions
db = SQLAlchemy()
bcrypt = Bcrypt()
socketio = SocketIO()

logger = logging.getLogger(__name__)


def create_app(config_object='skillswap.config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )

    # Socket handlers must be declared before init_app binds them to the server
    from skillswap import socket_events  # noqa: F401

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    socketio.init_app(app, cors_allowed_origins=app.config.get('CORS_ORIGINS') or '*')

    # Import models so their tables are known before create_all
    from skillswap import models  # noqa: F401

    with app.app_context():
        db.create_all()

    # Import and register Blueprints
    from skillswap.auth_routes import auth_bp
    from skillswap.profile_routes import profile_bp
    from skillswap.request_routes import request_bp
    from skillswap.transaction_routes import transaction_bp
    from skillswap.rating_routes import rating_bp
    from skillswap.notification_routes import notification_bp
    from skillswap.admin_routes import admin_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(profile_bp, url_prefix='/profile')
    app.register_blueprint(request_bp, url_prefix='/requests')
    app.register_blueprint(transaction_bp, url_prefix='/transactions')
    app.register_blueprint(rating_bp, url_prefix='/ratings')
    app.register_blueprint(notification_bp, url_prefix='/notifications')
    app.register_blueprint(admin_bp, url_prefix='/admin')

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        logger.exception("Database error while handling request: %s", error)
        return jsonify({'message': 'Database operation failed'}), 500

    register_commands(app)

    return app


def register_commands(app):
    @app.cli.command('refresh-matches')
    def refresh_matches_command():
        """Suggest providers for every open request (run from cron)."""
        from skillswap.matching import find_new_matches_for_open_requests

        created = find_new_matches_for_open_requests()
        click.echo(f"Created {created} new suggested matches.")

    @app.cli.command('promote-admin')
    @click.argument('email')
    def promote_admin_command(email):
        """Promote the first administrator."""
        from skillswap.auth import promote_to_admin

        result = promote_to_admin(email)
        if result['success']:
            click.echo(f"{email} is now an administrator.")
        else:
            click.echo(f"Promotion failed: {result['error']}", err=True)

    @app.cli.command('create-admin')
    @click.argument('email')
    @click.argument('name')
    @click.password_option()
    def create_admin_command(email, name, password):
        """Create a new administrator account."""
        from skillswap.auth import create_admin

        result = create_admin(email, password, name)
        if result['success']:
            click.echo(f"Created administrator {email}.")
        else:
            click.echo(f"Could not create administrator: {result['error']}", err=True)
