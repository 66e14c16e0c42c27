"""Image Studio: crop, filter and background removal for a single image."""

__version__ = "1.0.0"
