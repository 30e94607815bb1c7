"""REST API for the docshelf document manager."""
