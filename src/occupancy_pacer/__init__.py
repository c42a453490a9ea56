"""Occupancy Pacer - pace submissions against an inferred remote slot limit."""

__version__ = "0.1.0"
