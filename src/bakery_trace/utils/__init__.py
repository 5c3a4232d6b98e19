"""Utilities package for bakery-trace."""
