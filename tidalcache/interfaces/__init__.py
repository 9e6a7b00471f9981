"""Delivery layer (HTTP)."""
