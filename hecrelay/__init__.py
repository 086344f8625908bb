"""hecrelay: forward cloud log triggers to HEC-style collectors."""

__version__ = "0.3.0"
