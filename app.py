import os
import logging
from datetime import datetime
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Flask specific imports ---
from flask import Flask, request, g
from flask_cors import CORS

# --- Import our configuration and the catalog services ---
from config import Config
from tidalcache.database.db_manager import initialize_database
from tidalcache.database.store import CatalogStore
from tidalcache.domain.catalog import CatalogCache, MusicTypeConverter
from tidalcache.interfaces.http.routes import catalog_bp, health_bp
from tidalcache.observability import configure_structured_logging
from tidalcache.settings import build_tidal_fetcher, load_app_settings


logger = logging.getLogger(__name__)


def configure_logging(log_dir: str) -> str:
    """
    Configure root logging with:
      - FileHandler (INFO+) to a new file per run: log-YYYY-MM-DD-HH-MM-SS
      - StreamHandler (WARNING+) to console when ENABLE_CONSOLE_LOGS is set
      - Werkzeug/Flask loggers routed to root (no extra console spam)

    Returns the path to the created log file.
    """
    os.makedirs(log_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    log_path = os.path.join(log_dir, f"log-{timestamp}")

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    # Preserve structured handlers; remove existing FileHandlers to avoid duplicates
    root.handlers = [h for h in root.handlers if not isinstance(h, logging.FileHandler)]

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_path, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Console handler optional: keep backend console quiet unless explicitly enabled
    if Config.ENABLE_CONSOLE_LOGS:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    for name in ("werkzeug", "flask.app"):
        _l = logging.getLogger(name)
        _l.setLevel(logging.INFO)
        _l.handlers = []
        _l.propagate = True

    return log_path


def create_app(fetcher=None, settings_overrides=None):
    """Build the Flask app.

    ``fetcher`` replaces the TIDAL fetcher (tests pass an in-memory one);
    ``settings_overrides`` are merged over the environment-derived settings.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    # Re-read the database URL so a per-process override is honoured
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL') or Config.SQLALCHEMY_DATABASE_URI
    configure_structured_logging(app)

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get('X-Request-ID') or uuid4().hex

    @app.after_request
    def _inject_request_id(response):
        if getattr(g, 'request_id', None):
            response.headers.setdefault('X-Request-ID', g.request_id)
        return response

    allowed_origins = sorted({
        origin.strip()
        for origin in Config.CORS_ALLOWED_ORIGINS
        if origin and origin.strip() and origin.strip() != "*"
    })
    CORS(app, resources={r"/api/*": {"origins": allowed_origins}})

    # Initialize database
    initialize_database(app)

    settings = load_app_settings(settings_overrides)
    app.extensions['app_settings'] = settings
    if fetcher is None:
        if not settings.tidal_configured:
            app.logger.warning("TIDAL_ACCESS_TOKEN is not set; catalog lookups that miss the cache will fail.")
        fetcher = build_tidal_fetcher(settings)

    # Build domain services at the app boundary so routes only look them up
    catalog_cache = CatalogCache(
        fetcher,
        CatalogStore(),
        playlist_index_ttl=settings.playlist_index_ttl,
    )
    app.extensions['catalog_fetcher'] = fetcher
    app.extensions['catalog_cache'] = catalog_cache
    app.extensions['type_converter'] = MusicTypeConverter(catalog_cache)
    app.logger.info(
        "Catalog cache ready: country=%s, workers=%s, playlist TTL=%s days",
        settings.tidal_country_code,
        settings.fetch_workers,
        settings.playlist_index_ttl_days,
    )

    # --- Register Blueprints ---
    app.register_blueprint(catalog_bp)
    app.register_blueprint(health_bp)

    return app


if __name__ == '__main__':
    # Configure logging:
    # - In debug with reloader: only in the child process to avoid duplicate files
    # - In non-debug: always configure here
    debug_mode = bool(Config.DEBUG)
    log_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'tidalcache', 'log')
    if not debug_mode or os.environ.get('WERKZEUG_RUN_MAIN') == 'true':
        log_file_path = configure_logging(log_dir)
        logger.info("File logging initialized at %s", log_file_path)

    if not Config.TIDAL_ACCESS_TOKEN:
        logger.warning("TIDAL access token not found in environment variables.")
        logger.warning("Please set TIDAL_ACCESS_TOKEN for full functionality.")

    app = create_app()
    # Route app.logger through root handlers, keep levels consistent
    app.logger.handlers = []
    app.logger.setLevel(logging.INFO)
    app.logger.propagate = True
    logger.info("Starting Flask application...")
    app.run(debug=Config.DEBUG, host='0.0.0.0', port=int(os.getenv('PORT', '5000')), threaded=True)
