"""HTTP routes for the relay."""

from .routes import relay_error_handler, router

__all__ = ["relay_error_handler", "router"]
