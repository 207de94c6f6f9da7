"""Configuration surface shared across the deployment matrix layers."""

from . import config

__all__ = ["config"]
