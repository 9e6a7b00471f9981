"""Route blueprints exposed via Flask."""

from .catalog import catalog_bp
from .health import health_bp

__all__ = ["catalog_bp", "health_bp"]
