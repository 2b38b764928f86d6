"""Editing session services."""

from .crop_session import CropSession

__all__ = ["CropSession"]
