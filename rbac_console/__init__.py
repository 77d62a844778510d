"""Role-based access control administration console."""

__version__ = "0.1.0"
