# noqa: D104 - package initialization
from .logging import configure_structured_logging  # noqa: F401
