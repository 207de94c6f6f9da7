"""Domain entities and failure types for deployment matrix runs."""

from . import errors, models

__all__ = ["errors", "models"]
