"""HTTP status API for the signaling server."""

from .server import APIServer

__all__ = ["APIServer"]
