"""Application services: command building, normalisation, and the run pipeline."""

from . import command, normalizer, pipeline

__all__ = ["command", "normalizer", "pipeline"]
