"""Building blocks of an edge ingress reverse proxy: contexts, interceptors, localization, metrics and access logging."""

__version__ = "0.1.0"