"""Shared value types and rendering helpers."""
