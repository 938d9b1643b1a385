"""Back up and restore a development environment."""

__version__ = "0.1.0"
