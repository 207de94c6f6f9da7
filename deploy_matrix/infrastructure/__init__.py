"""Process adapters for the discovery tool."""

from . import process

__all__ = ["process"]
