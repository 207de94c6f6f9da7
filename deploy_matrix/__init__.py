"""GitHub Actions adapter that turns workflow-utils output into a deployment matrix."""

__version__ = "1.0.0"
