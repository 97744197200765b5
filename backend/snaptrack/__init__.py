"""Snapshot status tracking: page bootstrap, adaptive polling and cache invalidation."""

__version__ = "0.1.0"
