"""Viewing study backend: session lifecycle, event store and aggregation."""
