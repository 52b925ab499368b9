"""REST server for the identity bridge."""

from identity_bridge.server.config import ServerConfig

__all__ = ["ServerConfig"]
