"""Postcrop: per-platform image crop and rasterization engine."""

__version__ = "1.0.0"
