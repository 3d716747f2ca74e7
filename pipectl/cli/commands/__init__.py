"""CLI command modules."""

from . import pipeline_cmd

__all__ = ["pipeline_cmd"]
