"""
Equipment Scheduler - training equipment reservation engine
Flask application factory and initialization
"""

import os
import json
import click
import logging
from flask import Flask
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import configuration
from config import config

# Import database functions
from database import close_db, init_db, get_db, seed_database


def create_app(config_name=None):
    """
    Application factory for Flask app.

    Args:
        config_name: Configuration name ('development', 'production', 'test')

    Returns:
        Flask application instance
    """
    # Determine config
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    config_class = config[config_name]
    if hasattr(config_class, 'validate'):
        config_class.validate()

    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config_class)

    # Register CLI commands
    register_cli_commands(app)

    # Register teardown handlers
    register_teardown_handlers(app)

    # Configure logging
    configure_logging(app)

    return app


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    @click.option('--no-seed', is_flag=True, help='Create the schema without demo inventory.')
    def init_db_command(no_seed):
        """Initialize database with schema and seed data."""
        click.echo('Initializing database...')
        with app.app_context():
            init_db(with_seed=not no_seed)
        click.echo('Database initialized successfully!')

    @app.cli.command('seed-demo')
    def seed_demo_command():
        """Insert the demo facility inventory into an empty schema."""
        from database.seed import DEMO_FACILITY_ID
        from models.facility_config import get_facility_configs

        with app.app_context():
            if get_facility_configs(DEMO_FACILITY_ID):
                click.echo(f'Facility {DEMO_FACILITY_ID} is already seeded.', err=True)
                return

            db = get_db()
            try:
                seed_database(db)
                db.commit()
            except Exception:
                db.rollback()
                raise
            click.echo(f'Demo inventory created for facility {DEMO_FACILITY_ID}.')

    @app.cli.command('snapshot')
    @click.argument('facility_id')
    def snapshot_command(facility_id):
        """Print the real-time equipment status of a facility."""
        from models.equipment_status import get_realtime_status

        with app.app_context():
            status = get_realtime_status(facility_id)

        click.echo(json.dumps(status, indent=2, default=str))

    @app.cli.command('release-no-shows')
    @click.option('--now', 'now', default=None, help='Reference time (YYYY-MM-DD HH:MM).')
    def release_no_shows_command(now):
        """Mark ended, never checked-in reservations as no-show."""
        from models.equipment_reservation import release_overdue_no_shows

        with app.app_context():
            released = release_overdue_no_shows(now=now)

        click.echo(f'Released {len(released)} reservation(s) as no-show.')


def register_teardown_handlers(app):
    """Register teardown handlers."""

    @app.teardown_appcontext
    def teardown_db(error):
        """Close database connection at end of app context."""
        close_db(error)


def configure_logging(app):
    """Configure application logging."""
    if not app.debug and not app.testing:
        # Production logging
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = logging.FileHandler('logs/equipment.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        # Engine modules log through logging.getLogger(__name__)
        models_logger = logging.getLogger('models')
        models_logger.addHandler(file_handler)
        models_logger.setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Equipment Scheduler startup')
    else:
        # Development logging
        app.logger.setLevel(logging.DEBUG)
        logging.getLogger('models').setLevel(logging.DEBUG)


# Create application instance for development
if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        init_db()
    click.echo(f"Database ready at {app.config['DATABASE_PATH']}")
