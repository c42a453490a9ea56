"""Test fixtures for Occupancy Pacer."""
