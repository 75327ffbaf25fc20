"""Measures how much of a page's network traffic ResourceTiming can see."""

__version__ = "0.1.0"
