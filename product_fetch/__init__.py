"""Product data acquisition: transport, normalization, and request lifecycle."""

__version__ = "0.1.0"
