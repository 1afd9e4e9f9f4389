"""HTTP API for managing jobs."""

from cronpost.server.app import JobServer

__all__ = ["JobServer"]
