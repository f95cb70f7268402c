"""Request-scoped conditional log buffering."""

__version__ = "1.0.0"
