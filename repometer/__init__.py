"""Repository metadata harvesting and code-size measurement pipeline."""

__version__ = "0.1.0"
