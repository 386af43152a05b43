"""Service-mesh configuration helpers: caches, naming, conversion, a REST client and a secret controller."""

__version__ = "0.1.0"
__all__ = [
    "maps",
    "common",
    "util",
    "resolver",
    "queue",
    "config",
    "schema",
    "conversion",
    "client",
    "secret_controller",
]