# manage.py
import logging
import sys

from app import create_app
from tidalcache.database.db_manager import db

logger = logging.getLogger(__name__)


def create_db():
    """Creates the database tables."""
    app = create_app()
    with app.app_context():
        db_uri = app.config['SQLALCHEMY_DATABASE_URI']
        logger.info("Creating tables for %s", db_uri)
        db.create_all()
        print("Database tables created!")


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) > 1:
        command = sys.argv[1]
        if command == 'create_db':
            create_db()
        else:
            print(f"Unknown command: {command}")
            print("Usage: python manage.py create_db")
            sys.exit(1)
    else:
        print("No command provided. Usage: python manage.py create_db")
        sys.exit(1)
