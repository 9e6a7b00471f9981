"""Persistence: SQLAlchemy models and the transactional catalog store."""
