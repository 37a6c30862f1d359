"""API route modules."""

from . import governance

__all__ = ["governance"]
