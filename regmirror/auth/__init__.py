"""Credentials consumed by registry listing sources."""

from .credentials import CallbackRefresher, Credentials, Refresher

__all__ = ["CallbackRefresher", "Credentials", "Refresher"]
