"""Cordium settings application."""

__version__ = "0.0.1"
__build__ = 1
