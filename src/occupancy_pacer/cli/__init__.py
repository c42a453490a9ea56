"""Command line interface for Occupancy Pacer."""
