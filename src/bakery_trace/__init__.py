"""Bakery Trace - lot genealogy and recall tracing for bakery production."""

__version__ = "0.1.0"
