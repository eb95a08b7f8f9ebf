"""Olimpus Router - declarative meta-agent routing with delegation safety and analytics."""

__version__ = "0.1.0"
