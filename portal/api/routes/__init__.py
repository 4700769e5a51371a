"""Route modules exposed by the API package."""

from . import ping, push, tickets

__all__ = ["ping", "push", "tickets"]
