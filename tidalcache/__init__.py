"""Read-through cache that resolves TIDAL catalog stubs into stored entities."""

__version__ = "0.1.0"
