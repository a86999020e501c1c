"""HTTP proxy between assistant clients and the upstream LLM API."""

from inkwell.server.app import create_app

__all__ = ["create_app"]
