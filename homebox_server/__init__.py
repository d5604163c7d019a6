"""HTTP server for the Homebox API."""

from homebox_server.app import create_app

__all__ = ["create_app"]
