"""Domain layer: catalog caching and stub resolution."""
