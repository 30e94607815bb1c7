"""docshelf: knowledge-base document management."""

__version__ = "0.3.0"
