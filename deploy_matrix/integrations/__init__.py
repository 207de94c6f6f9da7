"""CI platform integrations."""

from . import github_actions

__all__ = ["github_actions"]
