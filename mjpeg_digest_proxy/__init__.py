"""Digest-authenticating reverse proxy for MJPEG camera streams."""

__version__ = "0.1.0"
