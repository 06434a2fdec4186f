"""Synchronize exported database schema files into version control."""

__version__ = "1.0.0"
