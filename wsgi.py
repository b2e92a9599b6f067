"""WSGI entry point for embedding the scheduler in a production service."""
import os
from app import create_app

application = create_app(os.environ.get('FLASK_ENV', 'production'))
