"""ged: find semantic usages of Go symbols."""

__version__ = "0.1.0"
