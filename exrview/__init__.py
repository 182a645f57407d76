"""Inspect OpenEXR images: layers, channels, metadata, tone-mapped previews and thumbnails."""

__version__ = "0.1.1"